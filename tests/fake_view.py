"""
fake_view.py - Test Helper for LedgerView

Provides a minimal LedgerView implementation for testing compute functions
without requiring a full Ledger instance.
"""

from __future__ import annotations
from copy import deepcopy
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Set

# Type aliases (matching core.py)
Positions = Dict[str, Decimal]
UnitState = Dict[str, Any]


class FakeView:
    """
    Minimal LedgerView implementation for testing compute functions.

    Units are the keys of states; wallets are the keys of balances plus any
    listed in wallets.

    Example:
        view = FakeView(
            balances={'alice': {'WETH': 10**18}},
            states={'WETH': {'decimals': 18, 'allowances': {}, 'minters': []}},
            time=datetime(2025, 1, 1),
        )

        view.get_positions('WETH')
        # Returns: {'alice': Decimal('1000000000000000000')}
    """

    def __init__(
        self,
        balances: Dict[str, Dict[str, int]],
        states: Optional[Dict[str, UnitState]] = None,
        time: Optional[datetime] = None,
        wallets: Optional[Iterable[str]] = None,
    ):
        self._balances = balances
        self._states = states or {}
        self._time = time or datetime(2025, 1, 1)
        self._wallets = set(balances) | set(wallets or ())

    @property
    def current_time(self) -> datetime:
        return self._time

    def get_balance(self, wallet: str, unit: str) -> Decimal:
        return Decimal(self._balances.get(wallet, {}).get(unit, 0))

    def get_unit_state(self, unit: str) -> UnitState:
        return deepcopy(self._states.get(unit, {}))

    def get_positions(self, unit: str) -> Positions:
        return {
            w: Decimal(b[unit])
            for w, b in self._balances.items()
            if unit in b and b[unit] != 0
        }

    def list_wallets(self) -> Set[str]:
        return set(self._wallets)

    def list_units(self) -> List[str]:
        return sorted(self._states)

