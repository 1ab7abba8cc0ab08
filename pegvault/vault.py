"""
vault.py - Stateful facade over a collateral vault

CollateralVault binds a ledger, a valuation engine, and a vault symbol.
Each mutating method runs one compute_* function from
units.collateral_vault and executes the result; validation errors are
raised before anything is submitted and ledger rejections surface as
TransferRejected. Read methods never touch the ledger.
"""

from __future__ import annotations
from typing import Dict, List, Optional
import logging

from .core import LedgerError, PendingTransaction
from .events import VaultEvent, events_for
from .ledger import Ledger
from .units import collateral_vault as cv
from .units.collateral_vault import AccountLedger, AccountStatus, LiquidationPlan, VaultConfig, VaultState
from .valuation import ValuationEngine

logger = logging.getLogger(__name__)


class CollateralVault:
    """
    One vault: deposit, mint, withdraw, repay, liquidate, and governance.

    Amounts are integer base units: collateral at the asset's precision,
    debt and repayments at the peg currency's (18).

    Example:
        vault = CollateralVault(ledger, valuation, "VAULT-WETH")
        vault.deposit_collateral("alice", 3 * 10**18)
        vault.mint_debt("alice", 3000 * 10**18)
        vault.health_factor("alice")
    """

    def __init__(self, ledger: Ledger, valuation: ValuationEngine, symbol: str):
        cv.load_vault(ledger, symbol)
        self.ledger = ledger
        self.valuation = valuation
        self.symbol = symbol

    def _run(self, action: str, build, *args) -> PendingTransaction:
        """Build and execute one operation, logging the outcome."""
        try:
            pending = build(*args)
            self.ledger.execute_or_raise(pending)
        except LedgerError as exc:
            logger.warning("%s %s failed: %s", self.symbol, action, exc)
            raise
        logger.info("%s %s %s", self.symbol, action, pending.origin.details_dict)
        return pending

    # ------------------------------------------------------------------
    # Account operations
    # ------------------------------------------------------------------

    def deposit_collateral(self, account: str, amount: int) -> None:
        """Pull amount of collateral from account (needs an allowance to the vault)."""
        self._run("deposit", cv.compute_deposit, self.ledger, self.symbol, account, amount)

    def mint_debt(self, account: str, amount: int) -> None:
        """Issue amount of peg currency to account; fails below HF 1.0."""
        self._run("mint", cv.compute_mint, self.ledger, self.valuation, self.symbol, account, amount)

    def withdraw_collateral(self, account: str, receiver: str, amount: int) -> None:
        self._run(
            "withdraw", cv.compute_withdraw,
            self.ledger, self.valuation, self.symbol, account, receiver, amount,
        )

    def repay_debt(self, payer: str, account: str, amount: int) -> None:
        """Burn amount of payer's peg currency against account's debt."""
        self._run("repay", cv.compute_repay, self.ledger, self.symbol, payer, account, amount)

    def liquidate(self, liquidator: str, target: str, repay_amount: int) -> int:
        """
        Repay part of target's debt and seize collateral plus the spread.

        Returns:
            Collateral seized, in the collateral asset's base units.
        """
        pending = self._run(
            "liquidate", cv.compute_liquidation,
            self.ledger, self.valuation, self.symbol, liquidator, target, repay_amount,
        )
        return pending.origin.details_dict['seized']

    # ------------------------------------------------------------------
    # Governance
    # ------------------------------------------------------------------

    def set_liquidation_threshold(self, caller: str, value: int) -> None:
        self._run(
            "set_liquidation_threshold", cv.compute_set_liquidation_threshold,
            self.ledger, self.symbol, caller, value,
        )

    def set_liquidation_spread(self, caller: str, value: int) -> None:
        self._run(
            "set_liquidation_spread", cv.compute_set_liquidation_spread,
            self.ledger, self.symbol, caller, value,
        )

    def set_close_factor(self, caller: str, value: int) -> None:
        self._run(
            "set_close_factor", cv.compute_set_close_factor,
            self.ledger, self.symbol, caller, value,
        )

    def set_price_feed(self, caller: str, feed_ref: str, feed_precision: int) -> None:
        self._run(
            "set_price_feed", cv.compute_set_price_feed,
            self.ledger, self.valuation, self.symbol, caller, feed_ref, feed_precision,
        )

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._run(
            "transfer_ownership", cv.compute_transfer_ownership,
            self.ledger, self.symbol, caller, new_owner,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def terms(self) -> VaultConfig:
        return cv.load_vault(self.ledger, self.symbol)[0]

    @property
    def state(self) -> VaultState:
        return cv.load_vault(self.ledger, self.symbol)[1]

    @property
    def owner(self) -> str:
        return self.state.owner

    @property
    def peg_currency(self) -> str:
        return self.state.peg_currency

    @property
    def collateral_asset(self) -> str:
        return self.terms.collateral_asset

    def account(self, account: str) -> AccountLedger:
        return self.state.account(account)

    def accounts(self) -> Dict[str, AccountLedger]:
        return dict(sorted(self.state.accounts.items()))

    def status(self, account: str) -> AccountStatus:
        return cv.compute_account_status(self.ledger, self.valuation, self.symbol, account)

    def health_factor(self, account: str) -> int:
        return cv.compute_health_factor(self.ledger, self.valuation, self.symbol, account)

    def collateral_value(self, account: str) -> int:
        """Peg value of account's collateral, before the threshold."""
        return self.valuation.collateral_to_peg(
            self.terms, self.account(account).collateral, self.ledger.current_time,
        )

    def max_mintable(self, account: str) -> int:
        return self.status(account).max_mintable

    def max_withdrawable(self, account: str) -> int:
        return self.status(account).max_withdrawable

    def is_liquidatable(self, account: str) -> bool:
        return not cv.is_solvent(self.health_factor(account))

    def max_liquidation(self, account: str) -> int:
        """Close-factor ceiling for liquidating account now (0 if healthy)."""
        if not self.is_liquidatable(account):
            return 0
        return cv.calculate_max_repay(self.account(account).debt, self.terms.close_factor)

    def preview_liquidation(self, target: str, repay_amount: int) -> LiquidationPlan:
        """Validate and size a liquidation without executing it."""
        return cv.plan_liquidation(self.ledger, self.valuation, self.symbol, target, repay_amount)

    def liquidatable_accounts(self) -> List[str]:
        return cv.compute_liquidatable_accounts(self.ledger, self.valuation, self.symbol)

    def events(self, event_type: Optional[str] = None) -> List[VaultEvent]:
        return events_for(self.ledger, self.symbol, event_type)

    def __repr__(self):
        return f"CollateralVault({self.symbol}, collateral={self.collateral_asset})"
