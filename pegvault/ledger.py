"""
ledger.py - Stateful Double-Entry Ledger

The Ledger class is the central state manager. It is the only module that
mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by compute functions
    - Executes transactions atomically (all moves and state changes, or none)
    - Maintains wallet balances, unit definitions, and unit state
    - Always validates and always logs - no exceptions
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Set, Optional, Tuple, Any
import copy
import logging

from .core import (
    # Types
    Move, Transaction, Unit,
    PendingTransaction,
    ExecuteResult,
    Positions, UnitState, BalanceMap,
    # Constants
    SYSTEM_WALLET,
    # Exceptions
    LedgerError, TransactionRejected, UnitNotRegistered, WalletNotRegistered,
    # Helper functions
    _freeze_state,
)

logger = logging.getLogger(__name__)


class Ledger:
    """
    Double-entry ledger with full validation and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to
    compute functions that access only read-only methods.

    Design Principles:
        - Always validates: every transaction is checked against registration,
          balance limits, timestamps, and the unit state it was built from.
        - Always logs: every applied transaction is appended to transaction_log.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own Ledger instance.

    Example:
        ledger = Ledger("main")
        ledger.register_unit(create_token_unit("WETH", "Wrapped Ether", 18, "gov"))
        ledger.register_wallet("alice")
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
        test_mode: bool = False
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Log every transaction outcome (default: True)
            test_mode: Allow set_balance() calls (default: False)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, Decimal]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.seen_intent_ids: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self.last_rejection: Optional[str] = None
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self.verbose = verbose
        self._test_mode = test_mode
        self._next_sequence: int = 0
        # Inverted index mapping unit -> {wallet -> quantity}
        self._positions_by_unit: Dict[str, Dict[str, Decimal]] = defaultdict(dict)
        # Net supply introduced by set_balance() in test mode, per unit
        self._seeded_supply: Dict[str, Decimal] = {}

        # The system wallet is the counterparty for issuance and redemption
        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(lambda: Decimal("0"))

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """
        Get the balance of a specific unit in a wallet.

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, Decimal("0"))

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """
        Get a deep copy of a unit's internal state.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return copy.deepcopy(self.units[unit_symbol].state)

    def get_positions(self, unit_symbol: str) -> Positions:
        """Get all non-zero positions for a unit across all wallets."""
        return dict(self._positions_by_unit.get(unit_symbol, {}))

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def list_units(self) -> List[str]:
        """List all registered unit symbols."""
        return sorted(self.units.keys())

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        """Get all balances for a wallet."""
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return dict(self.balances[wallet_id])

    def total_supply(self, unit_symbol: str) -> Decimal:
        """
        Total supply of a unit held outside the system wallet.

        For issued units (the peg currency) this is the outstanding supply;
        the system wallet holds its exact negative.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            (self.balances[w].get(unit_symbol, Decimal("0"))
             for w in sorted(self.registered_wallets) if w != SYSTEM_WALLET),
            Decimal("0"),
        )

    def verify_double_entry(self) -> Dict[str, Any]:
        """
        Verify that every unit's balances, system wallet included, sum to zero
        or to the supply set outside transactions.

        Moves always debit and credit the same quantity, so the sum over all
        wallets (including SYSTEM_WALLET) of any unit only changes through
        set_balance() in test mode.

        Returns:
            Dict with keys:
            - 'valid': bool - True if system wallet mirrors outstanding supply
            - 'supplies': Dict[str, Decimal] - outstanding supply per unit
            - 'discrepancies': List[Dict] - units whose issuance does not balance
        """
        supplies = {}
        discrepancies = []
        for unit_symbol in sorted(self.units):
            outstanding = self.total_supply(unit_symbol)
            supplies[unit_symbol] = outstanding
            issued = -self.balances[SYSTEM_WALLET].get(unit_symbol, Decimal("0"))
            seeded = self._seeded_supply.get(unit_symbol, Decimal("0"))
            if outstanding != issued + seeded:
                discrepancies.append({
                    'unit': unit_symbol,
                    'outstanding': outstanding,
                    'issued': issued,
                    'seeded': seeded,
                })
        return {
            'valid': not discrepancies,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock. Time can only move forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet in the ledger.

        Raises:
            ValueError: If wallet is empty or already registered
        """
        if not wallet_id or not wallet_id.strip():
            raise ValueError("Wallet id cannot be empty")
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(lambda: Decimal("0"))
        return wallet_id

    def register_unit(self, unit: Unit) -> None:
        """
        Register a new unit in the ledger.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            logger.debug("registered unit %s (%s) [%s]", unit.symbol, unit.name, unit.unit_type)

    def set_balance(self, wallet_id: str, unit_symbol: str, quantity) -> None:
        """
        Set a wallet's balance for a unit directly.

        WARNING: This bypasses double-entry accounting and is only available
        in test mode. Use build_transaction() and execute() otherwise.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use build_transaction() and execute() to modify balances. "
                "Set test_mode=True when creating Ledger for testing."
            )
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        if not isinstance(quantity, Decimal):
            quantity = Decimal(quantity)
        previous = self.balances[wallet_id][unit_symbol]
        self._seeded_supply[unit_symbol] = (
            self._seeded_supply.get(unit_symbol, Decimal("0")) + quantity - previous
        )
        self.balances[wallet_id][unit_symbol] = quantity
        self._update_position_index(wallet_id, unit_symbol, quantity)

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def _generate_exec_id(self, sequence: int) -> str:
        """Format: exec:{ledger_name}:{sequence:012d}:{timestamp_micros}"""
        micros = int(self._current_time.timestamp() * 1_000_000)
        return f"exec:{self.name}:{sequence:012d}:{micros}"

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        Units and wallets to create, unit state changes, and moves succeed
        together or fail together. Execution is idempotent: a pending
        transaction with the same intent_id will not be applied twice.

        Validation covers:
        - Timestamp (no transactions from the future)
        - Unit and wallet registration (including ones created here)
        - Stale state: each state change's old_state must equal the live state
        - Balance constraints (min/max balance limits)

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.ALREADY_APPLIED if transaction was already executed
            ExecuteResult.REJECTED if validation failed (see last_rejection)
        """
        self.last_rejection = None

        if pending.is_empty():
            return ExecuteResult.APPLIED

        if pending.intent_id in self.seen_intent_ids:
            if self.verbose:
                logger.info("ALREADY_APPLIED: intent_id=%s", pending.intent_id)
            return ExecuteResult.ALREADY_APPLIED

        valid, reason = self._validate_pending(pending)
        if not valid:
            self.last_rejection = reason
            if self.verbose:
                logger.info("REJECTED %s: %s", pending.origin, reason)
            return ExecuteResult.REJECTED

        sequence = self._next_sequence
        self._next_sequence += 1

        tx = Transaction(
            moves=pending.moves,
            state_changes=pending.state_changes,
            origin=pending.origin,
            timestamp=pending.timestamp,
            intent_id=pending.intent_id,
            exec_id=self._generate_exec_id(sequence),
            ledger_name=self.name,
            execution_time=self._current_time,
            sequence_number=sequence,
            units_to_create=pending.units_to_create,
            wallets_to_create=pending.wallets_to_create,
        )

        for unit in tx.units_to_create:
            self.register_unit(unit)
        for wallet in tx.wallets_to_create:
            self.register_wallet(wallet)

        # State first, then transfers
        for sc in tx.state_changes:
            old_unit = self.units[sc.unit]
            new_state = copy.deepcopy(sc.new_state if isinstance(sc.new_state, dict) else {})
            self.units[sc.unit] = replace(old_unit, _frozen_state=_freeze_state(new_state))

        self._execute_moves(tx.moves)

        self.transaction_log.append(tx)
        self.seen_intent_ids.add(pending.intent_id)

        if self.verbose:
            logger.debug("APPLIED%s", tx)
        return ExecuteResult.APPLIED

    def execute_or_raise(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction, raising if the ledger rejects it.

        Raises:
            TransactionRejected: With the validation failure reason
        """
        result = self.execute(pending)
        if result == ExecuteResult.REJECTED:
            raise TransactionRejected(self.last_rejection or "unknown reason")
        return result

    def _validate_pending(self, pending: PendingTransaction) -> Tuple[bool, str]:
        """
        Validate pending transaction against all constraints.

        Returns:
            Tuple of (success, reason); reason is empty on success
        """
        if pending.timestamp > self._current_time:
            return False, "future timestamp"

        new_units = {u.symbol: u for u in pending.units_to_create}
        for symbol in new_units:
            if symbol in self.units:
                return False, f"unit already registered: {symbol}"
        for wallet in pending.wallets_to_create:
            if wallet in self.registered_wallets:
                return False, f"wallet already registered: {wallet}"
        known_units = {**self.units, **new_units}
        known_wallets = self.registered_wallets | set(pending.wallets_to_create)

        for move in pending.moves:
            if move.unit_symbol not in known_units:
                return False, f"unit not registered: {move.unit_symbol}"
            if move.source not in known_wallets:
                return False, f"wallet not registered: {move.source}"
            if move.dest not in known_wallets:
                return False, f"wallet not registered: {move.dest}"

        # Optimistic concurrency: the state a change was computed from must
        # still be the live state
        for sc in pending.state_changes:
            if sc.unit in new_units:
                current_state = new_units[sc.unit].state
            elif sc.unit in self.units:
                current_state = self.units[sc.unit].state
            else:
                return False, f"unit not registered: {sc.unit}"
            if sc.old_state is not None and sc.old_state != current_state:
                return False, f"stale state for {sc.unit}"

        net: Dict[Tuple[str, str], Decimal] = {}
        for move in pending.moves:
            unit = known_units[move.unit_symbol]
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = unit.round(net.get(key_src, Decimal("0")) - move.quantity)
            net[key_dst] = unit.round(net.get(key_dst, Decimal("0")) + move.quantity)

        # SYSTEM_WALLET is exempt from balance validation
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            current = self.balances[wallet][unit_sym] if wallet in self.balances else Decimal("0")
            unit = known_units[unit_sym]
            proposed = unit.round(current + delta)

            if proposed < unit.min_balance:
                return False, f"{wallet} {unit_sym}: {proposed} < min {unit.min_balance}"
            if proposed > unit.max_balance:
                return False, f"{wallet} {unit_sym}: {proposed} > max {unit.max_balance}"

        return True, ""

    def _update_position_index(self, wallet_id: str, unit_symbol: str, quantity: Decimal) -> None:
        """Keep the unit -> {wallet -> quantity} index in sync; zero balances are dropped."""
        if quantity != 0:
            self._positions_by_unit[unit_symbol][wallet_id] = quantity
        else:
            self._positions_by_unit[unit_symbol].pop(wallet_id, None)

    def _execute_moves(self, moves) -> None:
        """Apply moves to wallet balances and update the position index."""
        for move in moves:
            unit = self.units[move.unit_symbol]
            new_src_balance = unit.round(
                self.balances[move.source][move.unit_symbol] - move.quantity
            )
            self.balances[move.source][move.unit_symbol] = new_src_balance
            self._update_position_index(move.source, move.unit_symbol, new_src_balance)
            new_dst_balance = unit.round(
                self.balances[move.dest][move.unit_symbol] + move.quantity
            )
            self.balances[move.dest][move.unit_symbol] = new_dst_balance
            self._update_position_index(move.dest, move.unit_symbol, new_dst_balance)

    # ========================================================================
    # LEDGER OPERATIONS
    # ========================================================================

    def clone(self) -> Ledger:
        """
        Create a deep copy of this ledger.

        Modifications to the clone do not affect the original and vice versa.
        Used to snapshot state before an operation, e.g. to assert that a
        failed operation left everything untouched.
        """
        cloned = Ledger.__new__(Ledger)
        cloned.name = self.name
        cloned._current_time = self._current_time
        cloned.verbose = self.verbose
        cloned._test_mode = self._test_mode
        cloned.last_rejection = self.last_rejection
        cloned.units = {
            symbol: replace(unit, _frozen_state=_freeze_state(copy.deepcopy(unit.state)))
            for symbol, unit in self.units.items()
        }
        cloned.registered_wallets = self.registered_wallets.copy()
        cloned.seen_intent_ids = self.seen_intent_ids.copy()
        cloned.transaction_log = list(self.transaction_log)
        cloned._next_sequence = self._next_sequence
        cloned.balances = {
            wallet: defaultdict(lambda: Decimal("0"), bals)
            for wallet, bals in self.balances.items()
        }
        cloned._positions_by_unit = defaultdict(dict)
        for unit_symbol, positions in self._positions_by_unit.items():
            cloned._positions_by_unit[unit_symbol] = dict(positions)
        cloned._seeded_supply = dict(self._seeded_supply)
        return cloned

    def snapshot(self) -> Dict[str, Any]:
        """
        Plain-data snapshot of balances and unit states for equality checks.

        Zero balances are omitted so that a wallet that never held a unit
        and one whose balance returned to zero compare equal.
        """
        return {
            'balances': {
                wallet: {u: q for u, q in sorted(bals.items()) if q != 0}
                for wallet, bals in sorted(self.balances.items())
            },
            'units': {symbol: unit.state for symbol, unit in sorted(self.units.items())},
            'wallets': sorted(self.registered_wallets),
        }
