"""
conftest.py - Shared pytest fixtures for vault tests

Provides common fixtures used across unit, conformance and functional tests:
- Price feeds and the valuation engine (WETH at 1607.84, peg at 1.2156)
- Ledgers with collateral tokens and funded wallets
- A registry with a deployed WETH vault
- Open positions for alice and a funded liquidator

Constants and setup helpers live in tests/helpers.py.
"""

import pytest

from pegvault import ValuationEngine, VaultRegistry

from tests.fake_view import FakeView
from tests.helpers import (
    T0, ETH, PEG, GOV, PEG_FEED,
    approve, make_ledger, make_oracle, open_position, weth_config,
)


@pytest.fixture
def oracle():
    return make_oracle()


@pytest.fixture
def valuation(oracle):
    return ValuationEngine(oracle, peg_feed=PEG_FEED)


@pytest.fixture
def ledger():
    """Ledger with WETH (18 dp) and WBTC (8 dp) and four user wallets."""
    return make_ledger()


@pytest.fixture
def registry(ledger, valuation):
    """Registry owned by gov, administering the PEG currency."""
    return VaultRegistry.create(ledger, valuation, governance=GOV)


@pytest.fixture
def vault(ledger, registry):
    """WETH vault: threshold 80, spread 10, close factor 50."""
    registry.deploy_vault(GOV, weth_config())
    return registry.vault("WETH")


@pytest.fixture
def alice_position(ledger, vault):
    """alice: 3 WETH deposited, 3000 PEG minted (HF ~1.058)."""
    open_position(ledger, vault, "alice", 3 * ETH, 3000 * PEG)
    return vault


@pytest.fixture
def liquidator(ledger, vault):
    """liquidator holds 20000 PEG minted against 50 WETH, approved to the vault."""
    open_position(ledger, vault, "liquidator", 50 * ETH, 20000 * PEG)
    approve(ledger, "PEG", "liquidator", vault.symbol, 20000 * PEG)
    return "liquidator"


@pytest.fixture
def fake_view():
    """Empty FakeView at T0."""
    return FakeView(balances={}, time=T0)
