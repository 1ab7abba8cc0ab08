"""
token.py - Fungible token units (collateral assets and the peg currency)

A token unit is an ERC-20 style balance sheet on the ledger: balances live
in wallets, and the unit state holds what the ledger cannot express as
balances.

State layout:
    decimals:   Base-unit precision (10**decimals base units per token)
    owner:      Identity that created the token
    admin:      Identity allowed to grant minter capability
    minters:    Sorted list of identities allowed to issue and burn
    allowances: {owner: {spender: amount}} for transfer_from / burn_from
    sequence:   Operation counter (distinct intent ids for repeated ops)

Issuance moves units SYSTEM_WALLET -> holder; burning moves them back.
SYSTEM_WALLET therefore holds the negative of the outstanding supply.

Two kinds of functions:

1. PURE STATE HELPERS (spend_allowance, require_minter):
   - Take a state dict, return a new state dict or raise
   - Used by vault operations that touch several units in one transaction

2. COMPUTE FUNCTIONS (compute_*):
   - Take (view, symbol, ...) and return a PendingTransaction
"""

from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..core import (
    LedgerView, Move, PendingTransaction, Unit, UnitStateChange, UnitState,
    OriginType, SYSTEM_WALLET, UINT256_MAX, PEG_DECIMALS,
    UNIT_TYPE_TOKEN, UNIT_TYPE_PEG_CURRENCY,
    build_transaction, empty_pending_transaction, make_origin, bump_sequence,
    _freeze_state,
)
from ..errors import (
    InsufficientAllowance, InvalidAddress, InvalidAmount, InvalidReference, Unauthorized,
)


TOKEN_UNIT_TYPES = (UNIT_TYPE_TOKEN, UNIT_TYPE_PEG_CURRENCY)

# An allowance of UINT256_MAX is never decremented.
UNLIMITED_ALLOWANCE = UINT256_MAX


# ============================================================================
# UNIT CREATION
# ============================================================================

def _token_unit(
    symbol: str,
    name: str,
    unit_type: str,
    decimals: int,
    owner: str,
    admin: str,
    minters: List[str],
) -> Unit:
    if not symbol or not symbol.strip():
        raise ValueError("symbol cannot be empty")
    if not isinstance(decimals, int) or isinstance(decimals, bool) or decimals < 0:
        raise ValueError(f"decimals must be a non-negative int, got {decimals!r}")
    if not owner or not owner.strip():
        raise InvalidAddress(owner)
    if not admin or not admin.strip():
        raise InvalidAddress(admin)
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=unit_type,
        min_balance=Decimal("0"),
        decimal_places=0,
        _frozen_state=_freeze_state({
            'decimals': decimals,
            'owner': owner,
            'admin': admin,
            'minters': sorted(set(minters)),
            'allowances': {},
            'sequence': 0,
        }),
    )


def create_token_unit(
    symbol: str,
    name: str,
    decimals: int,
    owner: str,
    minters: Optional[List[str]] = None,
) -> Unit:
    """
    Create a fungible token unit, e.g. a collateral asset.

    The owner is also the admin: it may grant minter capability.

    Example:
        weth = create_token_unit("WETH", "Wrapped Ether", 18, owner="gov")
        ledger.register_unit(weth)
    """
    return _token_unit(symbol, name, UNIT_TYPE_TOKEN, decimals, owner, owner, list(minters or []))


def create_peg_currency_unit(
    symbol: str,
    name: str,
    admin: str,
    decimals: int = PEG_DECIMALS,
) -> Unit:
    """
    Create the peg currency unit.

    The admin (normally the vault registry) grants mint/burn capability to
    each vault it deploys. No minters exist at creation.
    """
    return _token_unit(symbol, name, UNIT_TYPE_PEG_CURRENCY, decimals, admin, admin, [])


# ============================================================================
# READERS
# ============================================================================

def _token_state(view: LedgerView, symbol: str) -> UnitState:
    if not symbol or symbol not in view.list_units():
        raise InvalidReference(symbol, "unknown token")
    state = view.get_unit_state(symbol)
    if 'decimals' not in state or 'allowances' not in state:
        raise InvalidReference(symbol, "not a token")
    return state


def balance_of(view: LedgerView, symbol: str, wallet: str) -> int:
    """Balance of wallet in base units (0 for unregistered wallets)."""
    if wallet not in view.list_wallets():
        return 0
    return int(view.get_balance(wallet, symbol))


def decimals(view: LedgerView, symbol: str) -> int:
    return _token_state(view, symbol)['decimals']


def allowance(view: LedgerView, symbol: str, owner: str, spender: str) -> int:
    """Amount spender may still pull from owner."""
    state = _token_state(view, symbol)
    return state['allowances'].get(owner, {}).get(spender, 0)


def is_minter(view: LedgerView, symbol: str, identity: str) -> bool:
    return identity in _token_state(view, symbol)['minters']


# ============================================================================
# PURE STATE HELPERS
# ============================================================================

def spend_allowance(state: UnitState, owner: str, spender: str, amount: int) -> UnitState:
    """
    Return a new token state with amount deducted from owner's allowance to
    spender.

    An unlimited allowance is left unchanged.

    Raises:
        InsufficientAllowance: If amount exceeds the allowance
    """
    current = state['allowances'].get(owner, {}).get(spender, 0)
    if amount > current:
        raise InsufficientAllowance(owner, spender, amount, current)
    if current == UNLIMITED_ALLOWANCE:
        return dict(state)
    allowances = {o: dict(s) for o, s in state['allowances'].items()}
    allowances[owner][spender] = current - amount
    return {**state, 'allowances': allowances}


def require_minter(state: UnitState, caller: str, symbol: str) -> None:
    """
    Raises:
        Unauthorized: If caller holds no minter capability on the token
    """
    if caller not in state['minters']:
        raise Unauthorized(caller, f"MINTER:{symbol}")


def _require_wallet(view: LedgerView, wallet: str) -> None:
    if not wallet or not wallet.strip() or wallet == SYSTEM_WALLET:
        raise InvalidAddress(wallet)
    if wallet not in view.list_wallets():
        raise InvalidAddress(wallet)


def _require_positive(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidAmount(amount, "amount must be an integer number of base units")
    if amount <= 0:
        raise InvalidAmount(amount)


# ============================================================================
# COMPUTE FUNCTIONS
# ============================================================================

def compute_approve(
    view: LedgerView,
    symbol: str,
    owner: str,
    spender: str,
    amount: int,
) -> PendingTransaction:
    """
    Set owner's allowance to spender (overwrite, not increment).

    An amount of zero revokes the allowance.

    Raises:
        InvalidAddress: If owner is not a registered wallet or spender is empty
        InvalidAmount: If amount is negative or above UINT256_MAX
    """
    state = _token_state(view, symbol)
    _require_wallet(view, owner)
    if not spender or not spender.strip():
        raise InvalidAddress(spender)
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0 or amount > UINT256_MAX:
        raise InvalidAmount(amount, "allowance must be in [0, 2**256 - 1]")

    allowances = {o: dict(s) for o, s in state['allowances'].items()}
    allowances.setdefault(owner, {})[spender] = amount
    new_state = {**state, 'allowances': allowances, 'sequence': bump_sequence(state)}

    origin = make_origin(
        OriginType.CONTRACT, owner, symbol, "APPROVAL",
        owner=owner, spender=spender, amount=amount,
    )
    return build_transaction(
        view, [], [UnitStateChange(symbol, state, new_state)], origin,
    )


def compute_grant_minter(
    view: LedgerView,
    symbol: str,
    caller: str,
    minter: str,
) -> PendingTransaction:
    """
    Grant mint/burn capability on the token. Admin only.

    Granting an existing minter is a no-op. There is no revoke.

    Raises:
        Unauthorized: If caller is not the token admin
        InvalidAddress: If minter is empty
    """
    state = _token_state(view, symbol)
    if caller != state['admin']:
        raise Unauthorized(caller, f"ADMIN:{symbol}")
    if not minter or not minter.strip():
        raise InvalidAddress(minter)
    if minter in state['minters']:
        return empty_pending_transaction(view)

    new_state = {
        **state,
        'minters': sorted(state['minters'] + [minter]),
        'sequence': bump_sequence(state),
    }
    origin = make_origin(OriginType.GOVERNANCE, caller, symbol, "MINTER_GRANTED", minter=minter)
    return build_transaction(view, [], [UnitStateChange(symbol, state, new_state)], origin)


def compute_issue(
    view: LedgerView,
    symbol: str,
    caller: str,
    to: str,
    amount: int,
) -> PendingTransaction:
    """
    Issue new tokens to a wallet. Minter only.

    Returns:
        PendingTransaction moving amount SYSTEM_WALLET -> to.
    """
    _require_positive(amount)
    state = _token_state(view, symbol)
    require_minter(state, caller, symbol)
    _require_wallet(view, to)

    new_state = {**state, 'sequence': bump_sequence(state)}
    moves = [Move(amount, symbol, SYSTEM_WALLET, to, f"issue_{symbol}")]
    origin = make_origin(OriginType.CONTRACT, caller, symbol, "ISSUE", to=to, amount=amount)
    return build_transaction(view, moves, [UnitStateChange(symbol, state, new_state)], origin)


def compute_burn(
    view: LedgerView,
    symbol: str,
    caller: str,
    holder: str,
    amount: int,
) -> PendingTransaction:
    """
    Burn tokens held by holder. Minter only.

    A minter burning its own balance needs no allowance (burn); burning
    another holder's balance consumes holder's allowance to the minter
    (burn_from).

    Raises:
        Unauthorized: If caller is not a minter
        InsufficientAllowance: If burning for another holder above allowance
        InvalidAmount: If amount is not positive
    """
    _require_positive(amount)
    state = _token_state(view, symbol)
    require_minter(state, caller, symbol)
    _require_wallet(view, holder)

    new_state = state if holder == caller else spend_allowance(state, holder, caller, amount)
    new_state = {**new_state, 'sequence': bump_sequence(state)}
    moves = [Move(amount, symbol, holder, SYSTEM_WALLET, f"burn_{symbol}")]
    origin = make_origin(
        OriginType.CONTRACT, caller, symbol, "BURN", holder=holder, amount=amount,
    )
    return build_transaction(view, moves, [UnitStateChange(symbol, state, new_state)], origin)


def compute_transfer(
    view: LedgerView,
    symbol: str,
    sender: str,
    to: str,
    amount: int,
) -> PendingTransaction:
    """Push transfer from sender to to."""
    _require_positive(amount)
    state = _token_state(view, symbol)
    _require_wallet(view, sender)
    _require_wallet(view, to)
    if sender == to:
        raise InvalidAddress(to)

    new_state = {**state, 'sequence': bump_sequence(state)}
    moves = [Move(amount, symbol, sender, to, f"transfer_{symbol}")]
    origin = make_origin(
        OriginType.USER_ACTION, sender, symbol, "TRANSFER", sender=sender, to=to, amount=amount,
    )
    return build_transaction(view, moves, [UnitStateChange(symbol, state, new_state)], origin)


def compute_transfer_from(
    view: LedgerView,
    symbol: str,
    spender: str,
    owner: str,
    to: str,
    amount: int,
) -> PendingTransaction:
    """
    Pull transfer: spender moves owner's tokens to to, consuming allowance.

    Raises:
        InsufficientAllowance: If amount exceeds owner's allowance to spender
    """
    _require_positive(amount)
    state = _token_state(view, symbol)
    _require_wallet(view, owner)
    _require_wallet(view, to)
    if owner == to:
        raise InvalidAddress(to)
    new_state = spend_allowance(state, owner, spender, amount)

    new_state = {**new_state, 'sequence': bump_sequence(state)}
    moves = [Move(amount, symbol, owner, to, f"transfer_{symbol}")]
    origin = make_origin(
        OriginType.USER_ACTION, spender, symbol, "TRANSFER",
        sender=owner, to=to, amount=amount, spender=spender,
    )
    return build_transaction(view, moves, [UnitStateChange(symbol, state, new_state)], origin)


# ============================================================================
# TRANSACTION INTERFACE
# ============================================================================

def transact(
    view: LedgerView,
    symbol: str,
    event_type: str,
    **kwargs: Any,
) -> PendingTransaction:
    """
    Route a token event to its compute function.

    Event types and required parameters:
        APPROVAL:       owner, spender, amount
        MINTER_GRANTED: caller, minter
        ISSUE:          caller, to, amount
        BURN:           caller, holder, amount
        TRANSFER:       sender, to, amount (plus spender for a pull transfer)

    Example:
        pending = transact(view, "WETH", "APPROVAL", owner="alice",
                           spender="VAULT-WETH", amount=10**18)
    """
    handlers: Dict[str, tuple] = {
        'APPROVAL': (compute_approve, ('owner', 'spender', 'amount')),
        'MINTER_GRANTED': (compute_grant_minter, ('caller', 'minter')),
        'ISSUE': (compute_issue, ('caller', 'to', 'amount')),
        'BURN': (compute_burn, ('caller', 'holder', 'amount')),
    }
    if event_type == 'TRANSFER':
        for key in ('sender', 'to', 'amount'):
            if kwargs.get(key) is None:
                raise ValueError(f"Missing '{key}' parameter for TRANSFER event on {symbol}")
        if kwargs.get('spender') is not None:
            return compute_transfer_from(
                view, symbol, kwargs['spender'], kwargs['sender'], kwargs['to'], kwargs['amount'],
            )
        return compute_transfer(view, symbol, kwargs['sender'], kwargs['to'], kwargs['amount'])

    if event_type not in handlers:
        raise ValueError(f"Unknown event type '{event_type}' for token {symbol}")
    handler, required = handlers[event_type]
    for key in required:
        if kwargs.get(key) is None:
            raise ValueError(f"Missing '{key}' parameter for {event_type} event on {symbol}")
    return handler(view, symbol, *(kwargs[key] for key in required))
