"""
registry.py - Vault factory and collateral directory

The registry is a ledger unit whose state maps each collateral asset to the
vault serving it. It is the admin of the peg currency: deploying a vault
grants that vault mint/burn capability in the same transaction that creates
the vault and records it in the directory.

State layout:
    owner:         Governance identity allowed to deploy vaults
    peg_currency:  Symbol of the peg currency unit
    peg_feed:      Oracle reference pricing the peg currency
    directory:     {collateral_asset: vault_symbol}, create-only
    sequence:      Operation counter
"""

from __future__ import annotations
from decimal import Decimal
from typing import Dict, List, Optional
import logging

from .core import (
    LedgerView, PendingTransaction, Unit, UnitStateChange, UnitState,
    LedgerError, OriginType, SYSTEM_WALLET, PEG_DECIMALS, UNIT_TYPE_VAULT_REGISTRY,
    build_transaction, make_origin, bump_sequence,
    _freeze_state,
)
from .errors import (
    DuplicateCollateral, InvalidAddress, InvalidReference, Unauthorized,
)
from .events import VaultEvent, events_for
from .ledger import Ledger
from .units.collateral_vault import VaultConfig, create_vault_unit
from .units.token import create_peg_currency_unit
from .valuation import ValuationEngine
from .vault import CollateralVault

logger = logging.getLogger(__name__)


DEFAULT_REGISTRY_SYMBOL = "REGISTRY"
DEFAULT_PEG_SYMBOL = "PEG"


def default_vault_symbol(collateral_asset: str) -> str:
    return f"VAULT-{collateral_asset}"


# ============================================================================
# UNIT CREATION
# ============================================================================

def create_registry_unit(
    symbol: str,
    owner: str,
    peg_currency: str,
    peg_feed: str,
) -> Unit:
    """
    Create a vault registry unit owned by governance.

    Raises:
        InvalidAddress: If owner is empty
        InvalidReference: If peg_currency or peg_feed is empty
    """
    if not symbol or not symbol.strip():
        raise InvalidReference(symbol, "registry symbol cannot be empty")
    if not owner or not owner.strip():
        raise InvalidAddress(owner)
    if not peg_currency or not peg_currency.strip():
        raise InvalidReference(peg_currency, "peg currency cannot be empty")
    if not peg_feed or not peg_feed.strip():
        raise InvalidReference(peg_feed, "peg feed cannot be empty")
    return Unit(
        symbol=symbol,
        name="Vault Registry",
        unit_type=UNIT_TYPE_VAULT_REGISTRY,
        min_balance=Decimal("0"),
        max_balance=Decimal("0"),
        decimal_places=0,
        _frozen_state=_freeze_state({
            'owner': owner,
            'peg_currency': peg_currency,
            'peg_feed': peg_feed,
            'directory': {},
            'sequence': 0,
        }),
    )


def _registry_state(view: LedgerView, symbol: str) -> UnitState:
    if not symbol or symbol not in view.list_units():
        raise InvalidReference(symbol, "unknown registry")
    state = view.get_unit_state(symbol)
    if 'directory' not in state:
        raise InvalidReference(symbol, "not a vault registry")
    return state


def lookup_vault(view: LedgerView, registry_symbol: str, collateral_asset: str) -> Optional[str]:
    """Vault symbol serving collateral_asset, or None."""
    return _registry_state(view, registry_symbol)['directory'].get(collateral_asset)


# ============================================================================
# COMPUTE FUNCTIONS
# ============================================================================

def compute_create_registry(
    view: LedgerView,
    symbol: str,
    owner: str,
    peg_symbol: str,
    peg_name: str,
    peg_feed: str,
    peg_decimals: int = PEG_DECIMALS,
) -> PendingTransaction:
    """
    Bootstrap the registry and the peg currency it administers, atomically.

    Raises:
        InvalidReference: If either symbol is already registered
    """
    existing = set(view.list_units())
    for taken in (symbol, peg_symbol):
        if taken in existing:
            raise InvalidReference(taken, "symbol already registered")
    units = (
        create_peg_currency_unit(peg_symbol, peg_name, admin=symbol, decimals=peg_decimals),
        create_registry_unit(symbol, owner, peg_symbol, peg_feed),
    )
    origin = make_origin(
        OriginType.SYSTEM, owner, symbol, "REGISTRY_CREATED",
        owner=owner, peg_currency=peg_symbol, peg_feed=peg_feed,
    )
    return build_transaction(view, [], [], origin, units_to_create=units)


def compute_deploy_vault(
    view: LedgerView,
    valuation: ValuationEngine,
    registry_symbol: str,
    caller: str,
    config: VaultConfig,
    vault_symbol: Optional[str] = None,
) -> PendingTransaction:
    """
    Deploy a vault for config.collateral_asset. Governance only.

    One transaction creates the vault unit and its custody wallet, records
    the directory entry, and grants the vault mint/burn capability on the
    peg currency. The vault is owned by the registry's owner.

    Args:
        view: Read-only ledger access
        valuation: Used to confirm the collateral feed is registered
        registry_symbol: Registry unit symbol
        caller: Must be the registry owner
        config: Vault risk terms
        vault_symbol: Optional symbol; defaults to VAULT-<asset>

    Raises:
        Unauthorized: If caller is not the registry owner
        DuplicateCollateral: If the asset already has a vault
        InvalidReference: If the asset is not a registered token, its decimals
                          differ from config.collateral_precision, the feed
                          is unknown, or the vault symbol is taken
    """
    state = _registry_state(view, registry_symbol)
    if caller != state['owner']:
        raise Unauthorized(caller, f"OWNER:{registry_symbol}")

    asset = config.collateral_asset
    existing = state['directory'].get(asset)
    if existing is not None:
        raise DuplicateCollateral(asset, existing)

    units = view.list_units()
    if asset not in units:
        raise InvalidReference(asset, "collateral asset is not a registered token")
    asset_state = view.get_unit_state(asset)
    if 'decimals' not in asset_state or asset == state['peg_currency']:
        raise InvalidReference(asset, "collateral asset is not a registered token")
    if asset_state['decimals'] != config.collateral_precision:
        raise InvalidReference(
            asset,
            f"collateral_precision {config.collateral_precision} does not match "
            f"decimals {asset_state['decimals']}",
        )
    if not valuation.oracle.has_feed(config.price_feed):
        raise InvalidReference(config.price_feed, "unknown price feed")

    symbol = vault_symbol or default_vault_symbol(asset)
    if symbol in units or symbol in view.list_wallets() or symbol == SYSTEM_WALLET:
        raise InvalidReference(symbol, "vault symbol already in use")

    peg = state['peg_currency']
    peg_state = view.get_unit_state(peg)
    if peg_state['admin'] != registry_symbol:
        raise Unauthorized(registry_symbol, f"ADMIN:{peg}")

    vault_unit = create_vault_unit(
        symbol, f"{asset} Vault", config, owner=state['owner'], peg_currency=peg,
    )
    new_state = {
        **state,
        'directory': {**state['directory'], asset: symbol},
        'sequence': bump_sequence(state),
    }
    new_peg_state = {
        **peg_state,
        'minters': sorted(set(peg_state['minters']) | {symbol}),
        'sequence': bump_sequence(peg_state),
    }
    state_changes = [
        UnitStateChange(registry_symbol, state, new_state),
        UnitStateChange(peg, peg_state, new_peg_state),
    ]
    origin = make_origin(
        OriginType.GOVERNANCE, caller, registry_symbol, "VAULT_DEPLOYED",
        vault=symbol, **config.to_dict(),
    )
    return build_transaction(
        view, [], state_changes, origin,
        units_to_create=(vault_unit,),
        wallets_to_create=(symbol,),
    )


def compute_transfer_registry_ownership(
    view: LedgerView,
    registry_symbol: str,
    caller: str,
    new_owner: str,
) -> PendingTransaction:
    """
    Hand the registry's governance to new_owner. Owner only.

    Vaults already deployed keep their own owner.
    """
    state = _registry_state(view, registry_symbol)
    if caller != state['owner']:
        raise Unauthorized(caller, f"OWNER:{registry_symbol}")
    if not new_owner or not new_owner.strip():
        raise InvalidAddress(new_owner)
    new_state = {**state, 'owner': new_owner, 'sequence': bump_sequence(state)}
    origin = make_origin(
        OriginType.GOVERNANCE, caller, registry_symbol, "OWNERSHIP_TRANSFERRED",
        old=state['owner'], new=new_owner,
    )
    return build_transaction(view, [], [UnitStateChange(registry_symbol, state, new_state)], origin)


# ============================================================================
# STATEFUL FACADE
# ============================================================================

class VaultRegistry:
    """
    Governance-gated factory and directory of collateral vaults.

    The registry is an injected object: it wraps a Ledger and a
    ValuationEngine and hands out CollateralVault facades bound to the same
    pair.

    Example:
        registry = VaultRegistry.create(ledger, valuation, governance="gov")
        symbol = registry.deploy_vault("gov", VaultConfig("WETH", 18, "WETH/USD", 8))
        vault = registry.vault("WETH")
    """

    def __init__(self, ledger: Ledger, valuation: ValuationEngine, symbol: str = DEFAULT_REGISTRY_SYMBOL):
        _registry_state(ledger, symbol)
        self.ledger = ledger
        self.valuation = valuation
        self.symbol = symbol

    @classmethod
    def create(
        cls,
        ledger: Ledger,
        valuation: ValuationEngine,
        governance: str,
        symbol: str = DEFAULT_REGISTRY_SYMBOL,
        peg_symbol: str = DEFAULT_PEG_SYMBOL,
        peg_name: str = "Peg Currency",
    ) -> VaultRegistry:
        """Register the peg currency and a registry that administers it."""
        pending = compute_create_registry(
            ledger, symbol, governance, peg_symbol, peg_name, valuation.peg_feed,
            valuation.peg_precision,
        )
        ledger.execute_or_raise(pending)
        logger.info("registry %s created (peg %s, owner %s)", symbol, peg_symbol, governance)
        return cls(ledger, valuation, symbol)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def state(self) -> UnitState:
        return _registry_state(self.ledger, self.symbol)

    @property
    def owner(self) -> str:
        return self.state['owner']

    @property
    def peg_currency(self) -> str:
        return self.state['peg_currency']

    def lookup(self, collateral_asset: str) -> Optional[str]:
        return lookup_vault(self.ledger, self.symbol, collateral_asset)

    def vaults(self) -> Dict[str, str]:
        """Directory snapshot: collateral asset -> vault symbol."""
        return dict(sorted(self.state['directory'].items()))

    def vault(self, collateral_asset: str) -> CollateralVault:
        """
        Raises:
            InvalidReference: If no vault serves collateral_asset
        """
        symbol = self.lookup(collateral_asset)
        if symbol is None:
            raise InvalidReference(collateral_asset, "no vault for collateral")
        return CollateralVault(self.ledger, self.valuation, symbol)

    def events(self) -> List[VaultEvent]:
        return events_for(self.ledger, self.symbol)

    # ------------------------------------------------------------------
    # Governance
    # ------------------------------------------------------------------

    def _submit(self, pending: PendingTransaction, action: str) -> None:
        try:
            self.ledger.execute_or_raise(pending)
        except LedgerError as exc:
            logger.warning("%s %s failed: %s", self.symbol, action, exc)
            raise

    def deploy_vault(self, caller: str, config: VaultConfig, vault_symbol: Optional[str] = None) -> str:
        """Deploy a vault and return its symbol. See compute_deploy_vault()."""
        try:
            pending = compute_deploy_vault(
                self.ledger, self.valuation, self.symbol, caller, config, vault_symbol,
            )
        except LedgerError as exc:
            logger.warning("%s deploy for %s failed: %s", self.symbol, config.collateral_asset, exc)
            raise
        self._submit(pending, "deploy")
        symbol = pending.units_to_create[0].symbol
        logger.info("%s deployed %s for %s", self.symbol, symbol, config.collateral_asset)
        return symbol

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        pending = compute_transfer_registry_ownership(self.ledger, self.symbol, caller, new_owner)
        self._submit(pending, "transfer_ownership")
        logger.info("%s ownership %s -> %s", self.symbol, caller, new_owner)

    def __repr__(self):
        return f"VaultRegistry({self.symbol}, peg={self.peg_currency}, vaults={len(self.vaults())})"
