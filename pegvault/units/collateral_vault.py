"""
collateral_vault.py - Single-collateral vaults issuing the peg currency

This module provides the vault unit and every vault operation using a pure
function architecture with explicit inputs.

ARCHITECTURE (Pure Function Pattern):
=====================================

1. FROZEN DATACLASSES (explicit inputs):
   - VaultConfig: Risk terms (collateral, feed, threshold, spread, close factor)
   - AccountLedger: One account's collateral and debt
   - VaultState: Owner, peg currency, account map, totals

2. PURE CALCULATION FUNCTIONS (calculate_*):
   - Integer in, integer out
   - No LedgerView, no oracle
   - Example: calculate_health_factor(collateral_value, debt, threshold) -> int

3. ADAPTER FUNCTIONS (load_vault, to_state_dict):
   - The ONLY place that converts ledger state to typed dataclasses

4. COMPUTE FUNCTIONS (compute_*):
   - Take (view, [valuation,] symbol, ...) and return a PendingTransaction
   - Validate everything first; raise a typed VaultError before building
     anything, so a failed operation never reaches the ledger

Identity:
    The vault symbol is both the unit symbol (its state) and the custody
    wallet holding every account's collateral. It is also the identity
    holding mint/burn capability on the peg currency and the spender of
    allowances granted to the vault.

Key Formulas (P = 10**18):
    adjusted       = collateral_to_peg(collateral) * threshold // 100
    health_factor  = adjusted * P // debt           (MAX when debt == 0)
    max_repay      = debt * close_factor // 100
    seized         = peg_to_collateral(repay * (100 + spread) // 100)

Within a transaction the vault state change is listed before the moves;
the ledger applies state first, then transfers.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..core import (
    LedgerView, Move, PendingTransaction, Unit, UnitStateChange,
    OriginType, SYSTEM_WALLET, UNIT_TYPE_COLLATERAL_VAULT, UINT256_MAX,
    HEALTH_FACTOR_PRECISION, MAX_HEALTH_FACTOR, PERCENT_BASE,
    DEFAULT_LIQUIDATION_THRESHOLD, DEFAULT_LIQUIDATION_SPREAD, DEFAULT_CLOSE_FACTOR,
    build_transaction, make_origin, bump_sequence,
    _freeze_state,
)
from ..errors import (
    ArithmeticOverflow, CloseFactorExceeded, ExcessiveRepayment, HealthNotImproved,
    InsufficientCollateral, InvalidAddress, InvalidAmount, InvalidPercentage,
    InvalidReference, NotLiquidatable, SolvencyViolation, Unauthorized,
)
from ..normalizer import mul_div
from ..valuation import (
    Quotes, ValuationEngine, calculate_collateral_to_peg, calculate_peg_to_collateral,
)
from .token import require_minter, spend_allowance


# Parameters changed through compute_update_parameter()
RISK_PARAMETERS = ('liquidation_threshold', 'liquidation_spread', 'close_factor')


def validate_percentage(name: str, value: int) -> int:
    """
    Raises:
        InvalidPercentage: If value is not an int in (0, 100]
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidPercentage(name, value)
    if value <= 0 or value > PERCENT_BASE:
        raise InvalidPercentage(name, value)
    return value


def _require_precision(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValueError(f"{name} must be a non-negative int, got {value!r}")


# ============================================================================
# FROZEN DATACLASSES - Explicit Inputs for Pure Functions
# ============================================================================

@dataclass(frozen=True, slots=True)
class VaultConfig:
    """
    Risk terms of a vault.

    Fixed at deployment; afterwards changed only through the owner-gated
    setters, each of which produces a new VaultConfig.

    Attributes:
        collateral_asset: Symbol of the collateral token
        collateral_precision: Decimals of the collateral token
        price_feed: Oracle reference pricing the collateral
        price_feed_precision: Decimals of that feed's prices
        liquidation_threshold: Percent of collateral value counted toward solvency
        liquidation_spread: Liquidator bonus, percent of the repaid debt
        close_factor: Max percent of debt repayable in one liquidation
    """
    collateral_asset: str
    collateral_precision: int
    price_feed: str
    price_feed_precision: int
    liquidation_threshold: int = DEFAULT_LIQUIDATION_THRESHOLD
    liquidation_spread: int = DEFAULT_LIQUIDATION_SPREAD
    close_factor: int = DEFAULT_CLOSE_FACTOR

    def __post_init__(self):
        if not self.collateral_asset or not self.collateral_asset.strip():
            raise InvalidReference(self.collateral_asset, "collateral asset cannot be empty")
        if not self.price_feed or not self.price_feed.strip():
            raise InvalidReference(self.price_feed, "price feed cannot be empty")
        _require_precision('collateral_precision', self.collateral_precision)
        _require_precision('price_feed_precision', self.price_feed_precision)
        for name in RISK_PARAMETERS:
            validate_percentage(name, getattr(self, name))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> VaultConfig:
        """
        Build a config from a plain mapping (e.g. parsed JSON).

        Risk parameters fall back to the package defaults when absent.

        Example:
            VaultConfig.from_mapping({
                "collateral_asset": "WETH", "collateral_precision": 18,
                "price_feed": "WETH/USD", "price_feed_precision": 8,
            })
        """
        missing = [
            key for key in ('collateral_asset', 'collateral_precision', 'price_feed', 'price_feed_precision')
            if key not in data
        ]
        if missing:
            raise ValueError(f"Missing vault config fields: {', '.join(missing)}")
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown vault config fields: {', '.join(sorted(unknown))}")
        return cls(**dict(data))

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


@dataclass(frozen=True, slots=True)
class AccountLedger:
    """Collateral and debt of one account in one vault, in base units."""
    collateral: int = 0
    debt: int = 0

    def __post_init__(self):
        if self.collateral < 0:
            raise ValueError(f"collateral cannot be negative, got {self.collateral}")
        if self.debt < 0:
            raise ValueError(f"debt cannot be negative, got {self.debt}")


@dataclass(frozen=True, slots=True)
class VaultState:
    """
    Snapshot of everything about a vault that is not a risk term.

    accounts holds every account that ever deposited or minted; entries are
    never removed, even when both fields return to zero.
    """
    owner: str
    peg_currency: str
    accounts: Mapping[str, AccountLedger] = field(default_factory=dict)
    total_collateral: int = 0
    total_debt: int = 0
    sequence: int = 0

    def account(self, account: str) -> AccountLedger:
        return self.accounts.get(account, AccountLedger())


@dataclass(frozen=True, slots=True)
class AccountStatus:
    """Read-only solvency view of one account at current prices."""
    account: str
    collateral: int
    debt: int
    collateral_value: int
    health_factor: int
    max_mintable: int
    max_withdrawable: int
    liquidatable: bool


@dataclass(frozen=True, slots=True)
class LiquidationPlan:
    """Validated outcome of a liquidation, before it is submitted."""
    target: str
    repay_amount: int
    seized: int
    max_repay: int
    health_before: int
    health_after: int


# ============================================================================
# UNIT CREATION
# ============================================================================

def create_vault_unit(
    symbol: str,
    name: str,
    config: VaultConfig,
    owner: str,
    peg_currency: str,
) -> Unit:
    """
    Create a collateral vault unit.

    Nobody holds balances of the vault unit itself; it only carries state.
    Its custody wallet (same id as the symbol) must be registered alongside
    it, which the registry does in the deployment transaction.

    Example:
        config = VaultConfig("WETH", 18, "WETH/USD", 8)
        unit = create_vault_unit("VAULT-WETH", "WETH Vault", config, "gov", "PEG")
    """
    if not symbol or not symbol.strip():
        raise InvalidReference(symbol, "vault symbol cannot be empty")
    if not owner or not owner.strip():
        raise InvalidAddress(owner)
    if not peg_currency or not peg_currency.strip():
        raise InvalidReference(peg_currency, "peg currency cannot be empty")
    state = VaultState(owner=owner, peg_currency=peg_currency)
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_COLLATERAL_VAULT,
        min_balance=Decimal("0"),
        max_balance=Decimal("0"),
        decimal_places=0,
        _frozen_state=_freeze_state(to_state_dict(config, state)),
    )


# ============================================================================
# ADAPTER FUNCTIONS - Bridge Between LedgerView and Pure Functions
# ============================================================================

def load_vault(view: LedgerView, symbol: str) -> Tuple[VaultConfig, VaultState]:
    """
    Load a vault from ledger state as typed frozen dataclasses.

    Raises:
        InvalidReference: If symbol is not a registered vault

    Example:
        config, state = load_vault(view, "VAULT-WETH")
        hf = calculate_health_factor(value, state.account("alice").debt,
                                     config.liquidation_threshold)
    """
    if not symbol or symbol not in view.list_units():
        raise InvalidReference(symbol, "unknown vault")
    raw = view.get_unit_state(symbol)
    if 'accounts' not in raw or 'collateral_asset' not in raw:
        raise InvalidReference(symbol, "not a collateral vault")

    config = VaultConfig(
        collateral_asset=raw['collateral_asset'],
        collateral_precision=raw['collateral_precision'],
        price_feed=raw['price_feed'],
        price_feed_precision=raw['price_feed_precision'],
        liquidation_threshold=raw['liquidation_threshold'],
        liquidation_spread=raw['liquidation_spread'],
        close_factor=raw['close_factor'],
    )
    state = VaultState(
        owner=raw['owner'],
        peg_currency=raw['peg_currency'],
        accounts={
            name: AccountLedger(collateral=entry['collateral'], debt=entry['debt'])
            for name, entry in raw['accounts'].items()
        },
        total_collateral=raw.get('total_collateral', 0),
        total_debt=raw.get('total_debt', 0),
        sequence=raw.get('sequence', 0),
    )
    return config, state


def to_state_dict(config: VaultConfig, state: VaultState) -> Dict[str, Any]:
    """Inverse of load_vault(): the dict stored as the vault unit's state."""
    return {
        **config.to_dict(),
        'owner': state.owner,
        'peg_currency': state.peg_currency,
        'accounts': {
            name: {'collateral': entry.collateral, 'debt': entry.debt}
            for name, entry in state.accounts.items()
        },
        'total_collateral': state.total_collateral,
        'total_debt': state.total_debt,
        'sequence': state.sequence,
    }


# ============================================================================
# PURE CALCULATION FUNCTIONS - No LedgerView, All Inputs Explicit
# ============================================================================

def calculate_adjusted_collateral(collateral_value: int, liquidation_threshold: int) -> int:
    """Collateral value counted toward solvency (peg base units)."""
    return collateral_value * liquidation_threshold // PERCENT_BASE


def calculate_health_factor(collateral_value: int, debt: int, liquidation_threshold: int) -> int:
    """
    Health factor scaled by HEALTH_FACTOR_PRECISION.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Args:
        collateral_value: Collateral valued in peg base units
        debt: Outstanding debt in peg base units
        liquidation_threshold: Percent of value counted (0, 100]

    Returns:
        adjusted * 10**18 // debt, or MAX_HEALTH_FACTOR when debt is zero.
        A result >= 10**18 means solvent.

    Example:
        calculate_health_factor(1000 * 10**18, 800 * 10**18, 80)  # 10**18
    """
    if debt == 0:
        return MAX_HEALTH_FACTOR
    adjusted = calculate_adjusted_collateral(collateral_value, liquidation_threshold)
    return mul_div(adjusted, HEALTH_FACTOR_PRECISION, debt)


def is_solvent(health_factor: int) -> bool:
    return health_factor >= HEALTH_FACTOR_PRECISION


def calculate_max_repay(debt: int, close_factor: int) -> int:
    """Largest repay a single liquidation may make."""
    return debt * close_factor // PERCENT_BASE


def calculate_liquidation_bonus(repay_amount: int, liquidation_spread: int) -> int:
    """
    Peg value of the collateral a liquidator receives for repaying debt.

    Example:
        calculate_liquidation_bonus(4200 * 10**18, 10)  # 4620 * 10**18
    """
    return repay_amount * (PERCENT_BASE + liquidation_spread) // PERCENT_BASE


def calculate_max_mintable(collateral_value: int, debt: int, liquidation_threshold: int) -> int:
    """
    Additional debt an account can take while keeping HF >= 1.0.

    With debt' = adjusted the factor is exactly 10**18; one more base unit
    drops it below.
    """
    adjusted = calculate_adjusted_collateral(collateral_value, liquidation_threshold)
    return max(0, adjusted - debt)


def calculate_max_withdrawable(
    collateral: int,
    debt: int,
    liquidation_threshold: int,
    value_of: Callable[[int], int],
) -> int:
    """
    Largest collateral withdrawal that keeps HF >= 1.0.

    value_of maps a collateral amount to its peg value and must be
    non-decreasing; the answer is found by binary search over [0, collateral].
    """
    if debt == 0:
        return collateral

    def solvent_with(remaining: int) -> bool:
        return is_solvent(calculate_health_factor(value_of(remaining), debt, liquidation_threshold))

    if not solvent_with(collateral):
        return 0
    lo, hi = 0, collateral
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if solvent_with(collateral - mid):
            lo = mid
        else:
            hi = mid - 1
    return lo


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def _require_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidAmount(amount, "amount must be an integer number of base units")
    if amount <= 0:
        raise InvalidAmount(amount)
    if amount > UINT256_MAX:
        raise ArithmeticOverflow(f"amount {amount} exceeds 2**256 - 1")


def _require_account(view: LedgerView, symbol: str, account: str) -> None:
    """Accounts are registered wallets other than the system and the vault itself."""
    if not account or not account.strip():
        raise InvalidAddress(account)
    if account in (SYSTEM_WALLET, symbol):
        raise InvalidAddress(account)
    if account not in view.list_wallets():
        raise InvalidAddress(account)


def _require_owner(state: VaultState, caller: str, symbol: str) -> None:
    if caller != state.owner:
        raise Unauthorized(caller, f"OWNER:{symbol}")


def _checked_add(a: int, b: int) -> int:
    total = a + b
    if total > UINT256_MAX:
        raise ArithmeticOverflow(f"addition overflow: {a} + {b}")
    return total


def _value_of(config: VaultConfig, valuation: ValuationEngine, quotes: Quotes) -> Callable[[int], int]:
    collateral_quote, peg_quote = quotes
    return lambda amount: calculate_collateral_to_peg(
        amount, config.collateral_precision, collateral_quote, peg_quote, valuation.peg_precision,
    )


def _with_account(
    config: VaultConfig,
    state: VaultState,
    account: str,
    collateral_delta: int = 0,
    debt_delta: int = 0,
) -> Dict[str, Any]:
    """New state dict with one account changed, totals kept in sync."""
    entry = state.account(account)
    accounts = dict(state.accounts)
    accounts[account] = AccountLedger(
        collateral=entry.collateral + collateral_delta,
        debt=entry.debt + debt_delta,
    )
    new_state = replace(
        state,
        accounts=accounts,
        total_collateral=state.total_collateral + collateral_delta,
        total_debt=state.total_debt + debt_delta,
        sequence=state.sequence + 1,
    )
    return to_state_dict(config, new_state)


# ============================================================================
# ACCOUNT READS
# ============================================================================

def compute_health_factor(
    view: LedgerView,
    valuation: ValuationEngine,
    symbol: str,
    account: str,
    quotes: Optional[Quotes] = None,
) -> int:
    """Health factor of account at current prices (MAX when it has no debt)."""
    config, state = load_vault(view, symbol)
    entry = state.account(account)
    if entry.debt == 0:
        return MAX_HEALTH_FACTOR
    quotes = quotes or valuation.quotes(config, view.current_time)
    value = _value_of(config, valuation, quotes)(entry.collateral)
    return calculate_health_factor(value, entry.debt, config.liquidation_threshold)


def compute_account_status(
    view: LedgerView,
    valuation: ValuationEngine,
    symbol: str,
    account: str,
) -> AccountStatus:
    """
    Full solvency view of one account, priced with one pair of quotes.

    Unknown accounts report zero collateral and debt.
    """
    config, state = load_vault(view, symbol)
    entry = state.account(account)
    value_of = _value_of(config, valuation, valuation.quotes(config, view.current_time))
    collateral_value = value_of(entry.collateral)
    health_factor = calculate_health_factor(collateral_value, entry.debt, config.liquidation_threshold)
    return AccountStatus(
        account=account,
        collateral=entry.collateral,
        debt=entry.debt,
        collateral_value=collateral_value,
        health_factor=health_factor,
        max_mintable=calculate_max_mintable(collateral_value, entry.debt, config.liquidation_threshold),
        max_withdrawable=calculate_max_withdrawable(
            entry.collateral, entry.debt, config.liquidation_threshold, value_of,
        ),
        liquidatable=not is_solvent(health_factor),
    )


def compute_liquidatable_accounts(
    view: LedgerView,
    valuation: ValuationEngine,
    symbol: str,
) -> List[str]:
    """Sorted accounts with debt whose health factor is below 1.0."""
    config, state = load_vault(view, symbol)
    indebted = sorted(name for name, entry in state.accounts.items() if entry.debt > 0)
    if not indebted:
        return []
    value_of = _value_of(config, valuation, valuation.quotes(config, view.current_time))
    return [
        name for name in indebted
        if not is_solvent(calculate_health_factor(
            value_of(state.accounts[name].collateral),
            state.accounts[name].debt,
            config.liquidation_threshold,
        ))
    ]


# ============================================================================
# DEPOSIT
# ============================================================================

def compute_deposit(
    view: LedgerView,
    symbol: str,
    account: str,
    amount: int,
) -> PendingTransaction:
    """
    Deposit collateral from account into the vault.

    Pulls the collateral with transfer_from semantics: the account must
    have approved the vault for at least amount on the collateral token.

    Returns:
        PendingTransaction with:
        - state_changes: vault (account collateral += amount) and the
          collateral token (allowance consumed)
        - moves: amount of collateral account -> vault

    Raises:
        InvalidAmount: If amount <= 0
        InvalidAddress: If account is not a registered wallet
        InsufficientAllowance: If the vault's allowance is below amount
    """
    _require_amount(amount)
    config, state = load_vault(view, symbol)
    _require_account(view, symbol, account)
    _checked_add(state.total_collateral, amount)

    asset = config.collateral_asset
    token_state = view.get_unit_state(asset)
    new_token_state = spend_allowance(token_state, account, symbol, amount)
    new_token_state['sequence'] = bump_sequence(token_state)

    state_changes = [
        UnitStateChange(symbol, to_state_dict(config, state), _with_account(config, state, account, collateral_delta=amount)),
        UnitStateChange(asset, token_state, new_token_state),
    ]
    moves = [Move(amount, asset, account, symbol, symbol)]
    origin = make_origin(
        OriginType.USER_ACTION, account, symbol, "DEPOSIT", account=account, amount=amount,
    )
    return build_transaction(view, moves, state_changes, origin)


# ============================================================================
# MINT
# ============================================================================

def compute_mint(
    view: LedgerView,
    valuation: ValuationEngine,
    symbol: str,
    account: str,
    amount: int,
) -> PendingTransaction:
    """
    Issue amount of peg currency to account against its collateral.

    Raises:
        InvalidAmount: If amount <= 0
        InvalidAddress: If account is not a registered wallet
        SolvencyViolation: If the health factor with the new debt is below 1.0
        Unauthorized: If the vault holds no minter capability on the peg
    """
    _require_amount(amount)
    config, state = load_vault(view, symbol)
    _require_account(view, symbol, account)
    peg_state = view.get_unit_state(state.peg_currency)
    require_minter(peg_state, symbol, state.peg_currency)

    entry = state.account(account)
    new_debt = _checked_add(entry.debt, amount)
    _checked_add(state.total_debt, amount)
    value = _value_of(config, valuation, valuation.quotes(config, view.current_time))(entry.collateral)
    health_factor = calculate_health_factor(value, new_debt, config.liquidation_threshold)
    if not is_solvent(health_factor):
        raise SolvencyViolation(health_factor)

    state_changes = [
        UnitStateChange(symbol, to_state_dict(config, state), _with_account(config, state, account, debt_delta=amount)),
    ]
    moves = [Move(amount, state.peg_currency, SYSTEM_WALLET, account, symbol)]
    origin = make_origin(
        OriginType.USER_ACTION, account, symbol, "MINT",
        account=account, amount=amount, health_factor=health_factor,
    )
    return build_transaction(view, moves, state_changes, origin)


# ============================================================================
# WITHDRAW
# ============================================================================

def compute_withdraw(
    view: LedgerView,
    valuation: ValuationEngine,
    symbol: str,
    account: str,
    receiver: str,
    amount: int,
) -> PendingTransaction:
    """
    Withdraw amount of account's collateral to receiver.

    Raises:
        InvalidAmount: If amount <= 0
        InvalidAddress: If account or receiver is not a registered wallet
        InsufficientCollateral: If amount exceeds account's collateral
        SolvencyViolation: If the remaining collateral leaves HF below 1.0
    """
    _require_amount(amount)
    config, state = load_vault(view, symbol)
    _require_account(view, symbol, account)
    _require_account(view, symbol, receiver)

    entry = state.account(account)
    if amount > entry.collateral:
        raise InsufficientCollateral(amount, entry.collateral)
    remaining = entry.collateral - amount
    health_factor = MAX_HEALTH_FACTOR
    if entry.debt > 0:
        value = _value_of(config, valuation, valuation.quotes(config, view.current_time))(remaining)
        health_factor = calculate_health_factor(value, entry.debt, config.liquidation_threshold)
        if not is_solvent(health_factor):
            raise SolvencyViolation(health_factor)

    state_changes = [
        UnitStateChange(symbol, to_state_dict(config, state), _with_account(config, state, account, collateral_delta=-amount)),
    ]
    moves = [Move(amount, config.collateral_asset, symbol, receiver, symbol)]
    origin = make_origin(
        OriginType.USER_ACTION, account, symbol, "WITHDRAW",
        account=account, receiver=receiver, amount=amount,
    )
    return build_transaction(view, moves, state_changes, origin)


# ============================================================================
# REPAY
# ============================================================================

def compute_repay(
    view: LedgerView,
    symbol: str,
    payer: str,
    account: str,
    amount: int,
) -> PendingTransaction:
    """
    Repay amount of account's debt, burning peg currency held by payer.

    The payer may be a third party. The burn consumes payer's peg
    allowance to the vault (burn_from semantics).

    Raises:
        InvalidAmount: If amount <= 0
        InvalidAddress: If payer or account is not a registered wallet
        ExcessiveRepayment: If amount exceeds account's debt
        InsufficientAllowance: If payer's allowance to the vault is below amount
    """
    _require_amount(amount)
    config, state = load_vault(view, symbol)
    _require_account(view, symbol, payer)
    _require_account(view, symbol, account)

    entry = state.account(account)
    if amount > entry.debt:
        raise ExcessiveRepayment(amount, entry.debt)

    peg = state.peg_currency
    peg_state = view.get_unit_state(peg)
    require_minter(peg_state, symbol, peg)
    new_peg_state = spend_allowance(peg_state, payer, symbol, amount)
    new_peg_state['sequence'] = bump_sequence(peg_state)

    state_changes = [
        UnitStateChange(symbol, to_state_dict(config, state), _with_account(config, state, account, debt_delta=-amount)),
        UnitStateChange(peg, peg_state, new_peg_state),
    ]
    moves = [Move(amount, peg, payer, SYSTEM_WALLET, symbol)]
    origin = make_origin(
        OriginType.USER_ACTION, payer, symbol, "REPAY", payer=payer, account=account, amount=amount,
    )
    return build_transaction(view, moves, state_changes, origin)


# ============================================================================
# LIQUIDATION
# ============================================================================

def plan_liquidation(
    view: LedgerView,
    valuation: ValuationEngine,
    symbol: str,
    target: str,
    repay_amount: int,
) -> LiquidationPlan:
    """
    Validate a liquidation and size the seizure without building anything.

    Checks, in order: the target is below HF 1.0, the repay is within the
    close factor, the seizure is non-zero and covered by the target's
    collateral, and the target's health factor strictly improves.

    Raises:
        NotLiquidatable: Target health factor >= 1.0 (carries the factor)
        CloseFactorExceeded: repay_amount > debt * close_factor // 100
        InvalidAmount: repay_amount <= 0, or too small to seize anything
        InsufficientCollateral: Seizure exceeds the target's collateral
        HealthNotImproved: Target health factor would not rise
    """
    _require_amount(repay_amount)
    config, state = load_vault(view, symbol)
    _require_account(view, symbol, target)

    entry = state.account(target)
    quotes = valuation.quotes(config, view.current_time)
    value_of = _value_of(config, valuation, quotes)
    threshold = config.liquidation_threshold

    health_before = calculate_health_factor(value_of(entry.collateral), entry.debt, threshold)
    if is_solvent(health_before):
        raise NotLiquidatable(health_before)

    max_repay = calculate_max_repay(entry.debt, config.close_factor)
    if repay_amount > max_repay:
        raise CloseFactorExceeded(repay_amount, max_repay)

    collateral_quote, peg_quote = quotes
    seized = calculate_peg_to_collateral(
        calculate_liquidation_bonus(repay_amount, config.liquidation_spread),
        config.collateral_precision, collateral_quote, peg_quote, valuation.peg_precision,
    )
    if seized == 0:
        raise InvalidAmount(repay_amount, "repay too small to seize any collateral")
    if seized > entry.collateral:
        raise InsufficientCollateral(seized, entry.collateral)

    health_after = calculate_health_factor(
        value_of(entry.collateral - seized), entry.debt - repay_amount, threshold,
    )
    if health_after <= health_before:
        raise HealthNotImproved(health_before, health_after)

    return LiquidationPlan(
        target=target,
        repay_amount=repay_amount,
        seized=seized,
        max_repay=max_repay,
        health_before=health_before,
        health_after=health_after,
    )


def compute_liquidation(
    view: LedgerView,
    valuation: ValuationEngine,
    symbol: str,
    liquidator: str,
    target: str,
    repay_amount: int,
) -> PendingTransaction:
    """
    Partially liquidate target: liquidator repays debt, receives collateral
    worth the repay plus the liquidation spread.

    Returns:
        PendingTransaction with:
        - state_changes: vault (target debt -= repay, collateral -= seized)
          and the peg currency (liquidator's allowance consumed)
        - moves: repay peg liquidator -> SYSTEM_WALLET (burn) and seized
          collateral vault -> liquidator

    Raises:
        Everything plan_liquidation() raises, plus
        InvalidAddress: If liquidator is not a registered wallet
        InsufficientAllowance: If liquidator's peg allowance to the vault is short
    """
    _require_account(view, symbol, liquidator)
    plan = plan_liquidation(view, valuation, symbol, target, repay_amount)
    config, state = load_vault(view, symbol)

    peg = state.peg_currency
    peg_state = view.get_unit_state(peg)
    require_minter(peg_state, symbol, peg)
    new_peg_state = spend_allowance(peg_state, liquidator, symbol, repay_amount)
    new_peg_state['sequence'] = bump_sequence(peg_state)

    new_vault_state = _with_account(
        config, state, target, collateral_delta=-plan.seized, debt_delta=-repay_amount,
    )
    state_changes = [
        UnitStateChange(symbol, to_state_dict(config, state), new_vault_state),
        UnitStateChange(peg, peg_state, new_peg_state),
    ]
    moves = [
        Move(repay_amount, peg, liquidator, SYSTEM_WALLET, symbol),
        Move(plan.seized, config.collateral_asset, symbol, liquidator, symbol),
    ]
    origin = make_origin(
        OriginType.USER_ACTION, liquidator, symbol, "LIQUIDATE",
        liquidator=liquidator, target=target, repay_amount=repay_amount, seized=plan.seized,
        health_before=plan.health_before, health_after=plan.health_after,
    )
    return build_transaction(view, moves, state_changes, origin)


# ============================================================================
# GOVERNANCE
# ============================================================================

def _governance_change(
    view: LedgerView,
    symbol: str,
    caller: str,
    config: VaultConfig,
    state: VaultState,
    new_config: VaultConfig,
    new_state: VaultState,
    event_type: str,
    **details: Any,
) -> PendingTransaction:
    new_state = replace(new_state, sequence=state.sequence + 1)
    state_changes = [
        UnitStateChange(symbol, to_state_dict(config, state), to_state_dict(new_config, new_state)),
    ]
    origin = make_origin(OriginType.GOVERNANCE, caller, symbol, event_type, **details)
    return build_transaction(view, [], state_changes, origin)


def compute_update_parameter(
    view: LedgerView,
    symbol: str,
    caller: str,
    parameter: str,
    value: int,
) -> PendingTransaction:
    """
    Change one risk parameter. Owner only.

    Args:
        parameter: One of liquidation_threshold, liquidation_spread, close_factor
        value: New percent in (0, 100]

    Raises:
        Unauthorized: If caller is not the vault owner
        InvalidPercentage: If value is outside (0, 100]
        ValueError: If parameter is not a risk parameter
    """
    if parameter not in RISK_PARAMETERS:
        raise ValueError(f"Unknown risk parameter '{parameter}'")
    config, state = load_vault(view, symbol)
    _require_owner(state, caller, symbol)
    validate_percentage(parameter, value)

    old = getattr(config, parameter)
    return _governance_change(
        view, symbol, caller, config, state, replace(config, **{parameter: value}), state,
        "PARAMETER_UPDATED", parameter=parameter, old=old, new=value,
    )


def compute_set_liquidation_threshold(view: LedgerView, symbol: str, caller: str, value: int) -> PendingTransaction:
    return compute_update_parameter(view, symbol, caller, 'liquidation_threshold', value)


def compute_set_liquidation_spread(view: LedgerView, symbol: str, caller: str, value: int) -> PendingTransaction:
    return compute_update_parameter(view, symbol, caller, 'liquidation_spread', value)


def compute_set_close_factor(view: LedgerView, symbol: str, caller: str, value: int) -> PendingTransaction:
    return compute_update_parameter(view, symbol, caller, 'close_factor', value)


def compute_set_price_feed(
    view: LedgerView,
    valuation: ValuationEngine,
    symbol: str,
    caller: str,
    feed_ref: str,
    feed_precision: int,
) -> PendingTransaction:
    """
    Point the vault at another collateral price feed. Owner only.

    The new feed is read once: it must be registered, readable, and report
    the declared precision.

    Raises:
        Unauthorized: If caller is not the vault owner
        InvalidReference: If feed_ref is empty or not registered with the oracle
        OracleFault: If the feed cannot be read or its precision differs
    """
    config, state = load_vault(view, symbol)
    _require_owner(state, caller, symbol)
    if not feed_ref or not feed_ref.strip():
        raise InvalidReference(feed_ref, "price feed cannot be empty")
    if not valuation.oracle.has_feed(feed_ref):
        raise InvalidReference(feed_ref, "unknown price feed")
    new_config = replace(config, price_feed=feed_ref, price_feed_precision=feed_precision)
    valuation.quotes(new_config, view.current_time)

    return _governance_change(
        view, symbol, caller, config, state, new_config, state,
        "PARAMETER_UPDATED", parameter='price_feed', old=config.price_feed, new=feed_ref,
        old_precision=config.price_feed_precision, new_precision=feed_precision,
    )


def compute_transfer_ownership(
    view: LedgerView,
    symbol: str,
    caller: str,
    new_owner: str,
) -> PendingTransaction:
    """
    Hand the vault's governance to new_owner. Owner only.

    Raises:
        Unauthorized: If caller is not the vault owner
        InvalidAddress: If new_owner is empty
    """
    config, state = load_vault(view, symbol)
    _require_owner(state, caller, symbol)
    if not new_owner or not new_owner.strip():
        raise InvalidAddress(new_owner)
    return _governance_change(
        view, symbol, caller, config, state, config, replace(state, owner=new_owner),
        "OWNERSHIP_TRANSFERRED", old=state.owner, new=new_owner,
    )


# ============================================================================
# TRANSACTION INTERFACE
# ============================================================================

def _required(kwargs: Dict[str, Any], event_type: str, symbol: str, *keys: str) -> List[Any]:
    values = []
    for key in keys:
        value = kwargs.get(key)
        if value is None:
            raise ValueError(f"Missing '{key}' parameter for {event_type} event on {symbol}")
        values.append(value)
    return values


def transact(
    view: LedgerView,
    valuation: ValuationEngine,
    symbol: str,
    event_type: str,
    **kwargs: Any,
) -> PendingTransaction:
    """
    Generate moves and state updates for a vault event.

    This is the unified entry point for vault operations, routing to the
    appropriate compute function based on event_type.

    Args:
        view: Read-only ledger access
        valuation: Prices collateral for solvency checks
        symbol: Vault symbol
        event_type: Type of event:
            - DEPOSIT: account, amount
            - MINT: account, amount
            - WITHDRAW: account, amount (receiver defaults to account)
            - REPAY: payer, amount (account defaults to payer)
            - LIQUIDATE: liquidator, target, repay_amount
            - PARAMETER_UPDATED: caller, parameter, value
              (for parameter='price_feed', value is the feed reference and
              feed_precision is also required)
            - OWNERSHIP_TRANSFERRED: caller, new_owner
        **kwargs: Event-specific parameters

    Example:
        pending = transact(view, valuation, "VAULT-WETH", "MINT",
                           account="alice", amount=1000 * 10**18)
        ledger.execute(pending)
    """
    if event_type == 'DEPOSIT':
        account, amount = _required(kwargs, event_type, symbol, 'account', 'amount')
        return compute_deposit(view, symbol, account, amount)

    elif event_type == 'MINT':
        account, amount = _required(kwargs, event_type, symbol, 'account', 'amount')
        return compute_mint(view, valuation, symbol, account, amount)

    elif event_type == 'WITHDRAW':
        account, amount = _required(kwargs, event_type, symbol, 'account', 'amount')
        receiver = kwargs.get('receiver') or account
        return compute_withdraw(view, valuation, symbol, account, receiver, amount)

    elif event_type == 'REPAY':
        payer, amount = _required(kwargs, event_type, symbol, 'payer', 'amount')
        account = kwargs.get('account') or payer
        return compute_repay(view, symbol, payer, account, amount)

    elif event_type == 'LIQUIDATE':
        liquidator, target, repay_amount = _required(
            kwargs, event_type, symbol, 'liquidator', 'target', 'repay_amount',
        )
        return compute_liquidation(view, valuation, symbol, liquidator, target, repay_amount)

    elif event_type == 'PARAMETER_UPDATED':
        caller, parameter, value = _required(kwargs, event_type, symbol, 'caller', 'parameter', 'value')
        if parameter == 'price_feed':
            (feed_precision,) = _required(kwargs, event_type, symbol, 'feed_precision')
            return compute_set_price_feed(view, valuation, symbol, caller, value, feed_precision)
        return compute_update_parameter(view, symbol, caller, parameter, value)

    elif event_type == 'OWNERSHIP_TRANSFERRED':
        caller, new_owner = _required(kwargs, event_type, symbol, 'caller', 'new_owner')
        return compute_transfer_ownership(view, symbol, caller, new_owner)

    else:
        raise ValueError(f"Unknown event type '{event_type}' for vault {symbol}")
