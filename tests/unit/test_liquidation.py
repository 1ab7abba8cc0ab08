"""
test_liquidation.py - Unit tests for partial liquidation

Tests:
- Reference liquidations at WETH 1400 (health factor 0.9213...)
- Seizure sizing: repay * (100 + spread) / 100 converted to collateral
- Guard order: not liquidatable, close factor, zero seizure,
  insufficient collateral, health not improved
- Allowance and balance requirements on the liquidator
- Preview and liquidatable-account reads
"""

import pytest
from decimal import Decimal

from pegvault import (
    HEALTH_FACTOR_PRECISION,
    NotLiquidatable, CloseFactorExceeded, InsufficientCollateral, HealthNotImproved,
    SolvencyViolation, InsufficientAllowance, InvalidAmount, InvalidAddress, TransferRejected,
    balance_of, allowance,
)
from tests.helpers import ETH, PEG, VAULT, WETH_FEED, approve, open_position, set_price


HF_AT_1400 = 921355709114840408
SEIZED_FOR_1000 = 955114285714285714
HF_AFTER_1000 = 942033563672260612


@pytest.fixture
def underwater(ledger, oracle, alice_position, liquidator):
    """alice's position after WETH falls from 1607.84 to 1400."""
    set_price(oracle, WETH_FEED, 1400)
    return alice_position


class TestReferenceLiquidation:

    def test_health_factor_after_price_drop(self, underwater):
        assert underwater.health_factor("alice") == HF_AT_1400
        assert underwater.is_liquidatable("alice")

    def test_repay_1000(self, ledger, underwater, liquidator):
        seized = underwater.liquidate(liquidator, "alice", 1000 * PEG)

        assert seized == SEIZED_FOR_1000
        assert underwater.account("alice").debt == 2000 * PEG
        assert underwater.account("alice").collateral == 3 * ETH - SEIZED_FOR_1000
        assert underwater.health_factor("alice") == HF_AFTER_1000

    def test_balances_after_repay_1000(self, ledger, underwater, liquidator):
        underwater.liquidate(liquidator, "alice", 1000 * PEG)

        assert balance_of(ledger, "PEG", liquidator) == 19000 * PEG
        assert balance_of(ledger, "WETH", liquidator) == SEIZED_FOR_1000
        assert allowance(ledger, "PEG", liquidator, VAULT) == 19000 * PEG
        assert ledger.total_supply("PEG") == Decimal(22000 * PEG)
        assert balance_of(ledger, "WETH", VAULT) == 53 * ETH - SEIZED_FOR_1000

    def test_second_liquidation_restores_solvency(self, underwater, liquidator):
        underwater.liquidate(liquidator, "alice", 1000 * PEG)
        underwater.liquidate(liquidator, "alice", 1000 * PEG)

        assert underwater.account("alice").collateral == 1089771428571428572
        assert underwater.health_factor("alice") == 1004067127344521224
        assert not underwater.is_liquidatable("alice")

    def test_ten_weth_position(self, ledger, underwater, liquidator):
        """10 WETH against 10000 PEG; repaying 4200 seizes 4620 PEG worth of WETH."""
        open_position(ledger, underwater, "bob", 10 * ETH)
        set_price(underwater.valuation.oracle, WETH_FEED, "1607.84")
        underwater.mint_debt("bob", 10000 * PEG)
        set_price(underwater.valuation.oracle, WETH_FEED, 1400)

        assert underwater.health_factor("bob") == HF_AT_1400
        seized = underwater.liquidate(liquidator, "bob", 4200 * PEG)
        assert seized == 4011480000000000000
        assert underwater.health_factor("bob") == 951302946749724841

    def test_event(self, underwater, liquidator):
        underwater.liquidate(liquidator, "alice", 1000 * PEG)
        (event,) = underwater.events("LIQUIDATE")
        assert event.source_id == liquidator
        assert event["target"] == "alice"
        assert event["repay_amount"] == 1000 * PEG
        assert event["seized"] == SEIZED_FOR_1000
        assert event["health_before"] == HF_AT_1400
        assert event["health_after"] == HF_AFTER_1000


class TestGuards:

    def test_healthy_account(self, alice_position, liquidator):
        with pytest.raises(NotLiquidatable) as exc_info:
            alice_position.liquidate(liquidator, "alice", PEG)
        assert exc_info.value.health_factor == 1058137545245146429

    def test_debt_free_account(self, underwater, liquidator):
        with pytest.raises(NotLiquidatable):
            underwater.liquidate(liquidator, "bob", PEG)

    def test_close_factor_limit_is_inclusive(self, underwater, liquidator):
        assert underwater.max_liquidation("alice") == 1500 * PEG
        underwater.preview_liquidation("alice", 1500 * PEG)

    def test_close_factor_exceeded(self, ledger, underwater, liquidator):
        snapshot = ledger.snapshot()
        with pytest.raises(CloseFactorExceeded) as exc_info:
            underwater.liquidate(liquidator, "alice", 1500 * PEG + 1)
        assert exc_info.value.max_repay == 1500 * PEG
        assert ledger.snapshot() == snapshot

    def test_dust_repay_seizes_nothing(self, underwater, liquidator):
        with pytest.raises(InvalidAmount):
            underwater.liquidate(liquidator, "alice", 1)

    def test_zero_repay(self, underwater, liquidator):
        with pytest.raises(InvalidAmount):
            underwater.liquidate(liquidator, "alice", 0)

    def test_seizure_above_collateral(self, oracle, underwater, liquidator):
        set_price(oracle, WETH_FEED, 500)
        with pytest.raises(InsufficientCollateral) as exc_info:
            underwater.liquidate(liquidator, "alice", 1500 * PEG)
        assert exc_info.value.requested == 4011480000000000000
        assert exc_info.value.available == 3 * ETH

    def test_health_must_improve(self, ledger, oracle, underwater, liquidator):
        """At 1300 the 10% spread removes more value than the repay restores."""
        set_price(oracle, WETH_FEED, 1300)
        snapshot = ledger.snapshot()
        with pytest.raises(HealthNotImproved) as exc_info:
            underwater.liquidate(liquidator, "alice", 1000 * PEG)
        assert exc_info.value.before == 855544587035208950
        assert exc_info.value.after == 843316880552813425
        assert isinstance(exc_info.value, SolvencyViolation)
        assert ledger.snapshot() == snapshot

    def test_liquidator_without_allowance(self, ledger, underwater):
        open_position(ledger, underwater, "carol", 50 * ETH)
        set_price(underwater.valuation.oracle, WETH_FEED, "1607.84")
        underwater.mint_debt("carol", 5000 * PEG)
        set_price(underwater.valuation.oracle, WETH_FEED, 1400)
        with pytest.raises(InsufficientAllowance):
            underwater.liquidate("carol", "alice", 1000 * PEG)

    def test_liquidator_without_peg(self, ledger, underwater):
        approve(ledger, "PEG", "carol", VAULT, 1000 * PEG)
        with pytest.raises(TransferRejected):
            underwater.liquidate("carol", "alice", 1000 * PEG)
        assert underwater.account("alice").debt == 3000 * PEG

    def test_unregistered_liquidator(self, underwater):
        with pytest.raises(InvalidAddress):
            underwater.liquidate("mallory", "alice", 1000 * PEG)


class TestLiquidationReads:

    def test_preview_matches_execution(self, underwater, liquidator):
        plan = underwater.preview_liquidation("alice", 1000 * PEG)
        assert plan.seized == SEIZED_FOR_1000
        assert plan.max_repay == 1500 * PEG
        assert plan.health_before == HF_AT_1400
        assert plan.health_after == HF_AFTER_1000
        assert underwater.liquidate(liquidator, "alice", 1000 * PEG) == plan.seized

    def test_preview_changes_nothing(self, ledger, underwater):
        snapshot = ledger.snapshot()
        underwater.preview_liquidation("alice", 1000 * PEG)
        assert ledger.snapshot() == snapshot

    def test_liquidatable_accounts(self, underwater, liquidator):
        assert underwater.liquidatable_accounts() == ["alice"]

    def test_healthy_max_liquidation_is_zero(self, alice_position):
        assert alice_position.max_liquidation("alice") == 0

    def test_status_flags_liquidatable(self, underwater):
        status = underwater.status("alice")
        assert status.liquidatable
        assert status.health_factor < HEALTH_FACTOR_PRECISION
        assert status.max_mintable == 0
        assert status.max_withdrawable == 0
