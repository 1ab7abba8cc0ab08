"""
helpers.py - Shared constants and setup helpers for vault tests

Prices, feed references and the wallet set used throughout the suite, plus
small functions for approvals, funding and opening positions.
"""

from datetime import datetime
from decimal import Decimal

from hypothesis import strategies as st

from pegvault import (
    Ledger, PriceOracle, StaticPriceFeed, ValuationEngine, VaultConfig, VaultRegistry, CollateralVault,
    create_token_unit, compute_approve, to_scaled_price,
)


# =============================================================================
# CONSTANTS
# =============================================================================

T0 = datetime(2025, 1, 1)
ETH = 10 ** 18
PEG = 10 ** 18
BTC = 10 ** 8

WETH_FEED = "WETH/USD"
WBTC_FEED = "WBTC/USD"
PEG_FEED = "PEG/USD"

WETH_PRICE = Decimal("1607.84")
WBTC_PRICE = Decimal("42000")
PEG_PRICE = Decimal("1.2156")
FEED_PRECISION = 8

GOV = "gov"
VAULT = "VAULT-WETH"
WALLETS = ("alice", "bob", "carol", "liquidator")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def set_price(oracle: PriceOracle, feed_ref: str, price) -> None:
    """Move a static feed to a new human-readable price."""
    feed = oracle.feeds[feed_ref]
    feed.update_price(to_scaled_price(price, feed.precision))


def approve(ledger: Ledger, token: str, owner: str, spender: str, amount: int) -> None:
    ledger.execute_or_raise(compute_approve(ledger, token, owner, spender, amount))


def fund(ledger: Ledger, wallet: str, token: str, amount: int) -> None:
    """Add amount to wallet's balance (test mode only)."""
    current = int(ledger.get_balance(wallet, token))
    ledger.set_balance(wallet, token, current + amount)


def open_position(ledger: Ledger, vault: CollateralVault, account: str, collateral: int, debt: int = 0) -> None:
    """Fund, approve, deposit, and optionally mint for one account."""
    asset = vault.collateral_asset
    fund(ledger, account, asset, collateral)
    approve(ledger, asset, account, vault.symbol, collateral)
    vault.deposit_collateral(account, collateral)
    if debt:
        vault.mint_debt(account, debt)


def make_oracle() -> PriceOracle:
    return PriceOracle({
        WETH_FEED: StaticPriceFeed.from_decimal(WETH_PRICE, FEED_PRECISION),
        WBTC_FEED: StaticPriceFeed.from_decimal(WBTC_PRICE, FEED_PRECISION),
        PEG_FEED: StaticPriceFeed.from_decimal(PEG_PRICE, FEED_PRECISION),
    })


def make_ledger() -> Ledger:
    """Ledger with WETH (18 dp) and WBTC (8 dp) owned by gov, and the user wallets."""
    ledger = Ledger("test", T0, verbose=False, test_mode=True)
    ledger.register_unit(create_token_unit("WETH", "Wrapped Ether", 18, owner=GOV))
    ledger.register_unit(create_token_unit("WBTC", "Wrapped Bitcoin", 8, owner=GOV))
    for wallet in WALLETS:
        ledger.register_wallet(wallet)
    return ledger


def weth_config(**overrides) -> VaultConfig:
    params = dict(
        collateral_asset="WETH",
        collateral_precision=18,
        price_feed=WETH_FEED,
        price_feed_precision=FEED_PRECISION,
        liquidation_threshold=80,
        liquidation_spread=10,
        close_factor=50,
    )
    params.update(overrides)
    return VaultConfig(**params)


def wbtc_config(**overrides) -> VaultConfig:
    params = dict(
        collateral_asset="WBTC",
        collateral_precision=8,
        price_feed=WBTC_FEED,
        price_feed_precision=FEED_PRECISION,
    )
    params.update(overrides)
    return VaultConfig(**params)


def make_system():
    """
    Fresh ledger, oracle, valuation engine, registry and WETH vault.

    For property tests, where function-scoped fixtures are not re-created
    between generated examples.
    """
    ledger = make_ledger()
    oracle = make_oracle()
    valuation = ValuationEngine(oracle, peg_feed=PEG_FEED)
    registry = VaultRegistry.create(ledger, valuation, governance=GOV)
    registry.deploy_vault(GOV, weth_config())
    return ledger, oracle, registry.vault("WETH")


# =============================================================================
# OPERATION SEQUENCES
# =============================================================================

ACCOUNTS = ("alice", "bob", "carol")

# (operation, account, percent) triples for property tests
operations = st.lists(
    st.tuples(
        st.sampled_from(["deposit", "mint", "withdraw", "repay", "liquidate", "price"]),
        st.sampled_from(ACCOUNTS),
        st.integers(min_value=1, max_value=100),
    ),
    min_size=1,
    max_size=25,
)


def apply_operation(ledger: Ledger, oracle: PriceOracle, vault: CollateralVault, op: str, account: str, pct: int) -> None:
    """Run one operation sized as a percentage of what the account could do."""
    if op == "deposit":
        amount = pct * ETH // 10
        fund(ledger, account, "WETH", amount)
        approve(ledger, "WETH", account, VAULT, amount)
        vault.deposit_collateral(account, amount)
    elif op == "mint":
        vault.mint_debt(account, max(1, vault.max_mintable(account) * pct // 100))
    elif op == "withdraw":
        vault.withdraw_collateral(account, account, max(1, vault.max_withdrawable(account) * pct // 100))
    elif op == "repay":
        amount = max(1, vault.account(account).debt * pct // 100)
        approve(ledger, "PEG", account, VAULT, amount)
        vault.repay_debt(account, account, amount)
    elif op == "liquidate":
        amount = max(1, vault.max_liquidation(account) * pct // 100)
        approve(ledger, "PEG", "liquidator", VAULT, amount)
        vault.liquidate("liquidator", account, amount)
    elif op == "price":
        set_price(oracle, WETH_FEED, 800 + pct * 16)
