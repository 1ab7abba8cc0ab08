#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: A Peg Currency Vault Step by Step

Walks one borrower through the life of a collateral vault. Each step builds
on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Setup        - Prices, the registry, deploying a WETH vault
  4-5:  Borrowing    - Depositing collateral, minting against it
  6-7:  Liquidation  - A price crash and two partial liquidations
  8-9:  Exit         - Repaying debt, withdrawing collateral, the audit trail

Run:
    python demo.py             # Interactive mode (press Enter for each step)
    python demo.py --quick     # Run all steps without pausing
    python demo.py --verbose   # Also print the library's INFO log lines
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
import logging
import sys

from pegvault import (
    Ledger, PriceOracle, StaticPriceFeed, ValuationEngine, VaultRegistry, VaultConfig,
    CollateralVault, SolvencyViolation, NotLiquidatable, CloseFactorExceeded,
    create_token_unit, compute_approve, to_scaled_price, events_for,
    HEALTH_FACTOR_PRECISION, MAX_HEALTH_FACTOR,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Prices (8 decimal feeds)
    weth_price: Decimal = Decimal("1607.84")
    crash_price: Decimal = Decimal("1400")
    peg_price: Decimal = Decimal("1.2156")

    # Risk terms
    liquidation_threshold: int = 80
    liquidation_spread: int = 10
    close_factor: int = 50

    # Position
    alice_collateral: int = 3 * 10 ** 18
    alice_debt: int = 3000 * 10 ** 18
    liquidation_repay: int = 1000 * 10 ** 18


CONFIG = DemoConfig()
ONE = 10 ** 18

QUICK_MODE = "--quick" in sys.argv
VERBOSE = "--verbose" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def fmt(amount: int, decimals: int = 18) -> str:
    """Base units as a human number."""
    return f"{Decimal(amount).scaleb(-decimals):,.6f}"


def fmt_hf(health_factor: int) -> str:
    if health_factor == MAX_HEALTH_FACTOR:
        return "MAX (no debt)"
    return f"{Decimal(health_factor).scaleb(-18):.6f}"


def show_account(vault: CollateralVault, account: str):
    status = vault.status(account)
    print(f"    {account}: collateral {fmt(status.collateral)} WETH, "
          f"debt {fmt(status.debt)} PEG")
    print(f"    value {fmt(status.collateral_value)} PEG, health factor {fmt_hf(status.health_factor)}")


# ============================================================================
# SETUP (Steps 1-3)
# ============================================================================

def step_01_prices():
    """Create the oracle and the valuation engine."""
    step_header(1, "Prices",
        "Every valuation reads two feeds: the collateral and the peg reference.")

    oracle = PriceOracle({
        "WETH/USD": StaticPriceFeed.from_decimal(CONFIG.weth_price, 8),
        "PEG/USD": StaticPriceFeed.from_decimal(CONFIG.peg_price, 8),
    })
    valuation = ValuationEngine(oracle, peg_feed="PEG/USD")

    for ref in ("WETH/USD", "PEG/USD"):
        quote = oracle.latest(ref)
        print(f"    {ref:<10} {quote.price} at precision {quote.precision} = {quote.value}")

    print("""
    Prices are integers with a declared precision. The engine rescales both
    to 18 decimals and divides once, so each conversion truncates exactly once.
    """)
    return oracle, valuation


def step_02_registry(valuation: ValuationEngine):
    """Bootstrap the ledger, the peg currency and the registry."""
    step_header(2, "The Registry",
        "One registry administers the peg currency and deploys vaults.")

    ledger = Ledger("demo", CONFIG.start_time, verbose=False, test_mode=True)
    ledger.register_unit(create_token_unit("WETH", "Wrapped Ether", 18, owner="gov"))
    for wallet in ("alice", "liquidator"):
        ledger.register_wallet(wallet)

    registry = VaultRegistry.create(ledger, valuation, governance="gov")
    print(f"    {registry!r}")
    print(f"    peg currency: {registry.peg_currency}, owner: {registry.owner}")
    return ledger, registry


def step_03_deploy(registry: VaultRegistry):
    """Deploy the WETH vault."""
    step_header(3, "Deploying a Vault",
        "Deployment creates the vault and grants it mint capability atomically.")

    config = VaultConfig(
        collateral_asset="WETH",
        collateral_precision=18,
        price_feed="WETH/USD",
        price_feed_precision=8,
        liquidation_threshold=CONFIG.liquidation_threshold,
        liquidation_spread=CONFIG.liquidation_spread,
        close_factor=CONFIG.close_factor,
    )
    symbol = registry.deploy_vault("gov", config)
    vault = registry.vault("WETH")
    print(f"    deployed {symbol}: {vault.terms.to_dict()}")
    print(f"    directory: {registry.vaults()}")
    return vault


# ============================================================================
# BORROWING (Steps 4-5)
# ============================================================================

def step_04_deposit(ledger: Ledger, vault: CollateralVault):
    step_header(4, "Depositing Collateral",
        "The vault pulls WETH through an allowance, like transfer_from.")

    ledger.set_balance("alice", "WETH", CONFIG.alice_collateral)
    ledger.execute_or_raise(compute_approve(ledger, "WETH", "alice", vault.symbol, CONFIG.alice_collateral))
    vault.deposit_collateral("alice", CONFIG.alice_collateral)

    show_account(vault, "alice")
    print(f"    vault custody: {fmt(int(ledger.get_balance(vault.symbol, 'WETH')))} WETH")


def step_05_mint(vault: CollateralVault):
    step_header(5, "Minting",
        "Debt may grow only while the health factor stays at or above 1.0.")

    print(f"    max mintable: {fmt(vault.max_mintable('alice'))} PEG")
    vault.mint_debt("alice", CONFIG.alice_debt)
    show_account(vault, "alice")

    print("\n    Trying to mint 1000 PEG more...")
    try:
        vault.mint_debt("alice", 1000 * ONE)
    except SolvencyViolation as exc:
        print(f"    REJECTED: health factor would be {fmt_hf(exc.health_factor)}")


# ============================================================================
# LIQUIDATION (Steps 6-7)
# ============================================================================

def step_06_crash(ledger: Ledger, oracle: PriceOracle, vault: CollateralVault):
    step_header(6, "Price Crash",
        "Only a price move can push an account below 1.0.")

    ledger.set_balance("liquidator", "WETH", 50 * ONE)
    ledger.execute_or_raise(compute_approve(ledger, "WETH", "liquidator", vault.symbol, 50 * ONE))
    vault.deposit_collateral("liquidator", 50 * ONE)
    vault.mint_debt("liquidator", 20000 * ONE)
    ledger.execute_or_raise(compute_approve(ledger, "PEG", "liquidator", vault.symbol, 20000 * ONE))

    oracle.feeds["WETH/USD"].update_price(to_scaled_price(CONFIG.crash_price, 8))
    print(f"    WETH/USD now {CONFIG.crash_price}")
    show_account(vault, "alice")
    print(f"    liquidatable accounts: {vault.liquidatable_accounts()}")
    print(f"    close factor ceiling: {fmt(vault.max_liquidation('alice'))} PEG")


def step_07_liquidate(vault: CollateralVault):
    step_header(7, "Partial Liquidation",
        "Repay part of the debt, seize collateral worth repay plus the spread.")

    try:
        vault.liquidate("liquidator", "alice", vault.max_liquidation("alice") + 1)
    except CloseFactorExceeded as exc:
        print(f"    above the ceiling: REJECTED (max {fmt(exc.max_repay)} PEG)")

    for round_number in (1, 2):
        plan = vault.preview_liquidation("alice", CONFIG.liquidation_repay)
        seized = vault.liquidate("liquidator", "alice", CONFIG.liquidation_repay)
        print(f"\n    round {round_number}: repaid {fmt(plan.repay_amount)} PEG, seized {fmt(seized)} WETH")
        print(f"    health factor {fmt_hf(plan.health_before)} -> {fmt_hf(plan.health_after)}")

    try:
        vault.liquidate("liquidator", "alice", CONFIG.liquidation_repay)
    except NotLiquidatable as exc:
        print(f"\n    third round: REJECTED, alice is healthy again ({fmt_hf(exc.health_factor)})")
    show_account(vault, "alice")


# ============================================================================
# EXIT (Steps 8-9)
# ============================================================================

def step_08_exit(ledger: Ledger, vault: CollateralVault):
    step_header(8, "Repay and Withdraw",
        "With no debt, every unit of collateral can leave the vault.")

    debt = vault.account("alice").debt
    ledger.execute_or_raise(compute_approve(ledger, "PEG", "alice", vault.symbol, debt))
    vault.repay_debt("alice", "alice", debt)
    vault.withdraw_collateral("alice", "alice", vault.max_withdrawable("alice"))

    show_account(vault, "alice")
    print(f"    alice wallet: {fmt(int(ledger.get_balance('alice', 'WETH')))} WETH, "
          f"{fmt(int(ledger.get_balance('alice', 'PEG')))} PEG")
    assert vault.health_factor("alice") >= HEALTH_FACTOR_PRECISION


def step_09_audit(ledger: Ledger):
    step_header(9, "Audit Trail",
        "Every operation is a logged transaction with a typed event.")

    for event in events_for(ledger):
        print(f"    #{event.sequence:<3} {event.event_type:<22} {event.unit_symbol:<12} by {event.source_id}")

    report = ledger.verify_double_entry()
    print(f"\n    double entry valid: {report['valid']}")
    print(f"    PEG outstanding: {fmt(int(report['supplies']['PEG']))}")


def main():
    """Run the complete tutorial."""
    if VERBOSE:
        logging.basicConfig(level=logging.INFO, format="    [%(name)s] %(message)s")

    print("=" * 70)
    print("       PEGVAULT - INTERACTIVE TUTORIAL")
    print("=" * 70)
    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    oracle, valuation = step_01_prices()
    wait_for_enter()

    ledger, registry = step_02_registry(valuation)
    wait_for_enter()

    vault = step_03_deploy(registry)
    wait_for_enter()

    step_04_deposit(ledger, vault)
    wait_for_enter()

    step_05_mint(vault)
    wait_for_enter()

    step_06_crash(ledger, oracle, vault)
    wait_for_enter()

    step_07_liquidate(vault)
    wait_for_enter()

    step_08_exit(ledger, vault)
    wait_for_enter()

    step_09_audit(ledger)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See pegvault/units/collateral_vault.py for the formulas
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
