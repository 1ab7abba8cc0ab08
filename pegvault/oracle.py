"""
oracle.py - Price feeds and the oracle read adapter

Provides the price side of the valuation engine.

Classes:
- PriceQuote: One validated reading (integer price, precision, timestamp)
- PriceFeed: Protocol for a single external feed
- StaticPriceFeed: Time-independent price, updatable in place
- TimeSeriesPriceFeed: Time-varying prices with historical data
- PriceOracle: Directory of feeds; every read goes through latest()

Prices are integers scaled by 10**precision, e.g. 1607.84 at precision 8 is
160784000000. There is no caching: every latest() call reads the feed.
"""

from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_DOWN
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable
import logging

from .errors import InvalidReference, OracleFault
from .normalizer import rescale

logger = logging.getLogger(__name__)

# One raw feed reading: (signed integer price, observation time)
Round = Tuple[int, Optional[datetime]]


def to_scaled_price(price, precision: int) -> int:
    """
    Convert a human price (Decimal, str, or int) to an integer at precision.

    Truncates digits beyond the precision.

    Example:
        to_scaled_price(Decimal("1607.84"), 8)  # 160784000000
    """
    if isinstance(price, int) and not isinstance(price, bool):
        return price * 10 ** precision
    if not isinstance(price, Decimal):
        price = Decimal(str(price))
    return int(price.scaleb(precision).to_integral_value(rounding=ROUND_DOWN))


@dataclass(frozen=True, slots=True)
class PriceQuote:
    """
    A single price reading as seen by the valuation engine.

    Attributes:
        price: Integer price scaled by 10**precision
        precision: Number of decimals in price
        as_of: When the feed observed the price (None if the feed has no clock)
        feed_ref: Reference of the feed that produced the reading
    """
    price: int
    precision: int
    as_of: Optional[datetime] = None
    feed_ref: str = ""

    def normalized(self, precision: int) -> int:
        """Price rescaled to another precision."""
        return rescale(self.price, self.precision, precision)

    @property
    def value(self) -> Decimal:
        """Human-readable price (display only)."""
        return Decimal(self.price).scaleb(-self.precision)


@runtime_checkable
class PriceFeed(Protocol):
    """
    Protocol for an external price feed.

    latest_round() returns the most recent (price, as_of) observation at or
    before timestamp, or None if there is none. The price is signed; the
    oracle, not the feed, rejects non-positive readings.
    """
    precision: int

    def latest_round(self, timestamp: Optional[datetime] = None) -> Optional[Round]:
        ...


class StaticPriceFeed:
    """
    Feed with a single, time-independent price.

    Example:
        feed = StaticPriceFeed.from_decimal(Decimal("1607.84"), precision=8)
        feed.update_price(to_scaled_price(Decimal("1400"), 8))
    """

    def __init__(self, price: int, precision: int, as_of: Optional[datetime] = None):
        if precision < 0:
            raise ValueError(f"precision must be non-negative, got {precision}")
        self.precision = precision
        self.price = price
        self.as_of = as_of

    @classmethod
    def from_decimal(cls, price, precision: int, as_of: Optional[datetime] = None) -> StaticPriceFeed:
        return cls(to_scaled_price(price, precision), precision, as_of)

    def latest_round(self, timestamp: Optional[datetime] = None) -> Optional[Round]:
        """Return the static price (timestamp is ignored)."""
        return self.price, self.as_of

    def update_price(self, price: int, as_of: Optional[datetime] = None) -> None:
        """Replace the price."""
        self.price = price
        self.as_of = as_of

    def __repr__(self):
        return f"StaticPriceFeed({self.price}, precision={self.precision})"


class TimeSeriesPriceFeed:
    """
    Feed with time-varying prices.

    Uses the most recent observation at or before the requested timestamp.

    Examples:
        feed = TimeSeriesPriceFeed(8)
        feed.add_price(datetime(2025, 1, 15), 160784000000)

        feed = TimeSeriesPriceFeed(8, [(t0, 160784000000), (t1, 140000000000)])
    """

    def __init__(self, precision: int, path: Optional[List[Tuple[datetime, int]]] = None):
        if precision < 0:
            raise ValueError(f"precision must be non-negative, got {precision}")
        self.precision = precision
        self.history: List[Tuple[datetime, int]] = sorted(path or [], key=lambda x: x[0])

    def add_price(self, timestamp: datetime, price: int) -> None:
        """Add an observation, keeping history in timestamp order."""
        self.history.append((timestamp, price))
        self.history.sort(key=lambda x: x[0])

    def latest_round(self, timestamp: Optional[datetime] = None) -> Optional[Round]:
        """
        Get the observation at or before timestamp (latest overall if None).

        Uses binary search for O(log n) lookup.
        """
        if not self.history:
            return None
        if timestamp is None:
            ts, price = self.history[-1]
            return price, ts
        timestamps = [ts for ts, _ in self.history]
        idx = bisect_right(timestamps, timestamp)
        if idx == 0:
            return None
        ts, price = self.history[idx - 1]
        return price, ts

    def __repr__(self):
        return f"TimeSeriesPriceFeed({len(self.history)} observations, precision={self.precision})"


class PriceOracle:
    """
    Directory of price feeds keyed by feed reference.

    latest() is the only way the valuation engine reads prices. It performs
    a fresh read every call and rejects anything the core must not use.
    """

    def __init__(self, feeds: Optional[Dict[str, PriceFeed]] = None):
        self.feeds: Dict[str, PriceFeed] = {}
        for ref, feed in (feeds or {}).items():
            self.register_feed(ref, feed)

    def register_feed(self, feed_ref: str, feed: PriceFeed) -> None:
        """
        Register a feed under a reference.

        Raises:
            InvalidReference: If the reference is empty
            ValueError: If the reference is already registered
        """
        if not feed_ref or not feed_ref.strip():
            raise InvalidReference(feed_ref, "feed reference cannot be empty")
        if feed_ref in self.feeds:
            raise ValueError(f"Feed {feed_ref} already registered")
        self.feeds[feed_ref] = feed

    def has_feed(self, feed_ref: str) -> bool:
        return feed_ref in self.feeds

    def latest(self, feed_ref: str, timestamp: Optional[datetime] = None) -> PriceQuote:
        """
        Read the latest price from a feed.

        Raises:
            OracleFault: If the feed is unknown, fails while reading, has no
                         observation, or reports a non-positive price
        """
        feed = self.feeds.get(feed_ref)
        if feed is None:
            raise OracleFault(feed_ref, "unknown feed")
        try:
            reading = feed.latest_round(timestamp)
        except Exception as exc:
            logger.warning("feed %s failed to read: %s", feed_ref, exc)
            raise OracleFault(feed_ref, f"read failed: {exc}") from exc
        if reading is None:
            raise OracleFault(feed_ref, "no price available")
        price, as_of = reading
        if not isinstance(price, int) or isinstance(price, bool):
            raise OracleFault(feed_ref, f"price must be an integer, got {price!r}")
        if price <= 0:
            raise OracleFault(feed_ref, f"non-positive price {price}")
        return PriceQuote(price=price, precision=feed.precision, as_of=as_of, feed_ref=feed_ref)
