"""
valuation.py - Collateral <-> peg currency conversion

Two layers, following the pure-function split used by the unit modules:

1. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take the amount, the collateral precision and both PriceQuotes
   - No oracle access, trivially testable

2. ValuationEngine:
   - Reads the collateral feed and the peg reference feed (one fresh read
     each) and delegates to the pure functions

Key Formulas (P = peg precision, 18):
    collateral_price_P = rescale(collateral_price, feed_precision, P)
    peg_price_P        = rescale(peg_price, peg_feed_precision, P)
    peg        = amount * 10**(P - c) * collateral_price_P // peg_price_P
    collateral = peg * peg_price_P // (collateral_price_P * 10**(P - c))

Each direction is one multiply-then-divide, so each truncates once. The
reverse direction is computed independently, never as a reciprocal.
"""

from __future__ import annotations
from datetime import datetime
from typing import Optional, Tuple, TYPE_CHECKING
import logging

from .core import PEG_DECIMALS
from .errors import InvalidAmount, OracleFault
from .normalizer import scaled_mul_div
from .oracle import PriceOracle, PriceQuote

if TYPE_CHECKING:
    from .units.collateral_vault import VaultConfig

logger = logging.getLogger(__name__)


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def _normalized_price(quote: PriceQuote, peg_precision: int) -> int:
    price = quote.normalized(peg_precision)
    if price <= 0:
        raise OracleFault(
            quote.feed_ref,
            f"price {quote.price} at precision {quote.precision} truncates to zero",
        )
    return price


def calculate_collateral_to_peg(
    amount: int,
    collateral_precision: int,
    collateral_quote: PriceQuote,
    peg_quote: PriceQuote,
    peg_precision: int = PEG_DECIMALS,
) -> int:
    """
    Value a collateral amount in peg currency base units.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Args:
        amount: Collateral quantity in the asset's base units (>= 0)
        collateral_precision: Decimals of the collateral asset
        collateral_quote: Collateral price reading
        peg_quote: Peg reference price reading
        peg_precision: Decimals of the peg currency

    Returns:
        Peg currency base units, truncated.

    Example:
        # 3 WETH at 1607.84, peg at 1.2156 (both 8 dp)
        calculate_collateral_to_peg(3 * 10**18, 18, weth_quote, peg_quote)
        # 3968015794669299111549
    """
    if amount < 0:
        raise InvalidAmount(amount, "amount cannot be negative")
    collateral_price = _normalized_price(collateral_quote, peg_precision)
    peg_price = _normalized_price(peg_quote, peg_precision)
    return scaled_mul_div(amount, collateral_price, peg_price, collateral_precision, peg_precision)


def calculate_peg_to_collateral(
    peg_amount: int,
    collateral_precision: int,
    collateral_quote: PriceQuote,
    peg_quote: PriceQuote,
    peg_precision: int = PEG_DECIMALS,
) -> int:
    """
    Convert a peg currency amount to collateral base units.

    PURE FUNCTION - computed directly, not as the reciprocal of
    calculate_collateral_to_peg().

    Returns:
        Collateral base units at collateral_precision, truncated.
    """
    if peg_amount < 0:
        raise InvalidAmount(peg_amount, "amount cannot be negative")
    collateral_price = _normalized_price(collateral_quote, peg_precision)
    peg_price = _normalized_price(peg_quote, peg_precision)
    return scaled_mul_div(peg_amount, peg_price, collateral_price, peg_precision, collateral_precision)


# ============================================================================
# ENGINE
# ============================================================================

Quotes = Tuple[PriceQuote, PriceQuote]


class ValuationEngine:
    """
    Prices collateral through the oracle.

    Holds the oracle and the peg reference feed. Vault operations call
    quotes() once and pass the pair to the pure functions, so one operation
    sees one consistent pair of prices.

    Example:
        engine = ValuationEngine(oracle, peg_feed="PEG/USD")
        value = engine.collateral_to_peg(config, 3 * 10**18)
    """

    def __init__(self, oracle: PriceOracle, peg_feed: str, peg_precision: int = PEG_DECIMALS):
        self.oracle = oracle
        self.peg_feed = peg_feed
        self.peg_precision = peg_precision

    def quotes(self, config: VaultConfig, timestamp: Optional[datetime] = None) -> Quotes:
        """
        Read the collateral feed and the peg feed.

        Raises:
            OracleFault: If either read fails, or the collateral feed reports
                         a precision other than the vault's configured one
        """
        collateral_quote = self.oracle.latest(config.price_feed, timestamp)
        if collateral_quote.precision != config.price_feed_precision:
            raise OracleFault(
                config.price_feed,
                f"feed precision {collateral_quote.precision} does not match "
                f"configured {config.price_feed_precision}",
            )
        peg_quote = self.oracle.latest(self.peg_feed, timestamp)
        return collateral_quote, peg_quote

    def collateral_to_peg(
        self,
        config: VaultConfig,
        amount: int,
        timestamp: Optional[datetime] = None,
        quotes: Optional[Quotes] = None,
    ) -> int:
        """Value amount of the vault's collateral in peg base units."""
        collateral_quote, peg_quote = quotes or self.quotes(config, timestamp)
        return calculate_collateral_to_peg(
            amount, config.collateral_precision, collateral_quote, peg_quote, self.peg_precision
        )

    def peg_to_collateral(
        self,
        config: VaultConfig,
        peg_amount: int,
        timestamp: Optional[datetime] = None,
        quotes: Optional[Quotes] = None,
    ) -> int:
        """Convert peg base units to the vault's collateral base units."""
        collateral_quote, peg_quote = quotes or self.quotes(config, timestamp)
        return calculate_peg_to_collateral(
            peg_amount, config.collateral_precision, collateral_quote, peg_quote, self.peg_precision
        )

    def __repr__(self):
        return f"ValuationEngine(peg_feed={self.peg_feed!r}, feeds={sorted(self.oracle.feeds)})"
