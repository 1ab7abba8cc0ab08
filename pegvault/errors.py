"""
errors.py - Vault and registry error taxonomy

Every error carries the parameters that explain it (the computed health
factor, the close-factor ceiling, the caller that lacked a capability) so
callers can report the failure without recomputing anything.

All errors are raised before a transaction is built, so a failed operation
leaves the ledger exactly as it was.
"""

from __future__ import annotations

from .core import LedgerError, TransactionRejected


class VaultError(LedgerError):
    """Base error for vault, registry, oracle, and token operations."""
    pass


class InvalidAmount(VaultError):
    """Amount is zero or negative where a positive amount is required."""

    def __init__(self, amount: int, message: str = "amount must be positive"):
        super().__init__(f"{message}, got {amount}")
        self.amount = amount


class InvalidAddress(VaultError):
    """Account, receiver, or owner identity is empty or not registered."""

    def __init__(self, address: str):
        super().__init__(f"invalid address: {address!r}")
        self.address = address


class InvalidReference(VaultError):
    """Feed, asset, or vault reference is empty or unknown."""

    def __init__(self, reference: str, message: str = "invalid reference"):
        super().__init__(f"{message}: {reference!r}")
        self.reference = reference


class InvalidPercentage(VaultError):
    """Percent parameter is outside (0, 100]."""

    def __init__(self, name: str, value: int):
        super().__init__(f"{name} must be in (0, 100], got {value}")
        self.name = name
        self.value = value


class SolvencyViolation(VaultError):
    """Operation would leave the account with a health factor below 1.0."""

    def __init__(self, health_factor: int, message: str = "health factor below 1.0"):
        super().__init__(f"{message}: {health_factor}")
        self.health_factor = health_factor


class HealthNotImproved(SolvencyViolation):
    """Liquidation would not strictly raise the target's health factor."""

    def __init__(self, before: int, after: int):
        super().__init__(after, f"liquidation does not improve health factor (before {before})")
        self.before = before
        self.after = after


class NotLiquidatable(VaultError):
    """Target account is solvent (health factor >= 1.0)."""

    def __init__(self, health_factor: int):
        super().__init__(f"account is not liquidatable, health factor {health_factor}")
        self.health_factor = health_factor


class CloseFactorExceeded(VaultError):
    """Requested liquidation repay is above debt * close_factor / 100."""

    def __init__(self, requested: int, max_repay: int):
        super().__init__(f"repay {requested} exceeds close factor limit {max_repay}")
        self.requested = requested
        self.max_repay = max_repay


class DuplicateCollateral(VaultError):
    """A vault already exists for this collateral asset."""

    def __init__(self, collateral_asset: str, existing: str):
        super().__init__(f"collateral {collateral_asset} already has vault {existing}")
        self.collateral_asset = collateral_asset
        self.existing = existing


class Unauthorized(VaultError):
    """Caller lacks the capability required by the operation."""

    def __init__(self, caller: str, capability: str):
        super().__init__(f"{caller!r} lacks capability {capability}")
        self.caller = caller
        self.capability = capability


class OracleFault(VaultError):
    """Price feed is unknown, unreadable, or returned a non-positive price."""

    def __init__(self, feed_ref: str, reason: str):
        super().__init__(f"oracle fault on {feed_ref!r}: {reason}")
        self.feed_ref = feed_ref
        self.reason = reason


class InsufficientCollateral(VaultError):
    """Withdrawal or seizure exceeds the account's collateral balance."""

    def __init__(self, requested: int, available: int):
        super().__init__(f"requested {requested} collateral, only {available} available")
        self.requested = requested
        self.available = available


class ExcessiveRepayment(VaultError):
    """Repayment exceeds the account's outstanding debt."""

    def __init__(self, requested: int, debt: int):
        super().__init__(f"repay {requested} exceeds outstanding debt {debt}")
        self.requested = requested
        self.debt = debt


class InsufficientAllowance(VaultError):
    """transfer_from / burn_from exceeds the owner's allowance to the spender."""

    def __init__(self, owner: str, spender: str, requested: int, allowance: int):
        super().__init__(
            f"{spender} may spend {allowance} of {owner}'s balance, requested {requested}"
        )
        self.owner = owner
        self.spender = spender
        self.requested = requested
        self.allowance = allowance


class ArithmeticOverflow(VaultError):
    """Intermediate product exceeds the unsigned 256-bit range."""
    pass


# Ledger-side rejection (balance below minimum, stale state) surfaced by facades.
TransferRejected = TransactionRejected


__all__ = [
    "VaultError",
    "InvalidAmount",
    "InvalidAddress",
    "InvalidReference",
    "InvalidPercentage",
    "SolvencyViolation",
    "HealthNotImproved",
    "NotLiquidatable",
    "CloseFactorExceeded",
    "DuplicateCollateral",
    "Unauthorized",
    "OracleFault",
    "InsufficientCollateral",
    "ExcessiveRepayment",
    "InsufficientAllowance",
    "ArithmeticOverflow",
    "TransferRejected",
]
