"""
test_vault_operations.py - Unit tests for CollateralVault account operations

Tests:
- deposit_collateral (allowance, custody, accounting)
- mint_debt (solvency check at the boundary)
- withdraw_collateral (to self and third-party receivers)
- repay_debt (own and third-party repayment)
- Read methods (status, max_mintable, max_withdrawable)
- Failed operations leave the ledger untouched
"""

import pytest
from decimal import Decimal

from pegvault import (
    CollateralVault, AccountLedger, MAX_HEALTH_FACTOR, HEALTH_FACTOR_PRECISION, SYSTEM_WALLET,
    SolvencyViolation, InsufficientAllowance, InsufficientCollateral, ExcessiveRepayment,
    InvalidAddress, InvalidAmount, InvalidReference, OracleFault, TransferRejected,
    allowance, balance_of,
)
from tests.helpers import ETH, PEG, VAULT, WETH_FEED, approve, fund, open_position, set_price


ALICE_VALUE = 3968015794669299111549
ALICE_HF = 1058137545245146429
ALICE_CAPACITY = 174412635735439289239
ALICE_MAX_WITHDRAW = 164829833814309881


class TestDeposit:

    def test_moves_collateral_into_custody(self, ledger, vault):
        fund(ledger, "alice", "WETH", 5 * ETH)
        approve(ledger, "WETH", "alice", VAULT, 3 * ETH)
        vault.deposit_collateral("alice", 3 * ETH)

        assert balance_of(ledger, "WETH", "alice") == 2 * ETH
        assert balance_of(ledger, "WETH", VAULT) == 3 * ETH
        assert vault.account("alice") == AccountLedger(3 * ETH, 0)
        assert vault.state.total_collateral == 3 * ETH
        assert allowance(ledger, "WETH", "alice", VAULT) == 0

    def test_deposits_accumulate(self, ledger, vault):
        open_position(ledger, vault, "alice", ETH)
        open_position(ledger, vault, "alice", 2 * ETH)
        assert vault.account("alice").collateral == 3 * ETH

    def test_without_allowance(self, ledger, vault):
        fund(ledger, "alice", "WETH", ETH)
        with pytest.raises(InsufficientAllowance):
            vault.deposit_collateral("alice", ETH)
        assert vault.account("alice") == AccountLedger()

    def test_more_than_balance_rejected(self, ledger, vault):
        fund(ledger, "alice", "WETH", ETH)
        approve(ledger, "WETH", "alice", VAULT, 2 * ETH)
        snapshot = ledger.snapshot()
        with pytest.raises(TransferRejected):
            vault.deposit_collateral("alice", 2 * ETH)
        assert ledger.snapshot() == snapshot

    def test_zero(self, vault):
        with pytest.raises(InvalidAmount):
            vault.deposit_collateral("alice", 0)

    def test_unregistered_account(self, vault):
        with pytest.raises(InvalidAddress):
            vault.deposit_collateral("mallory", ETH)

    def test_deposit_event(self, ledger, vault):
        open_position(ledger, vault, "alice", ETH)
        (event,) = vault.events("DEPOSIT")
        assert event.source_id == "alice"
        assert event["amount"] == ETH


class TestMint:

    def test_issues_peg_currency(self, ledger, alice_position):
        vault = alice_position
        assert balance_of(ledger, "PEG", "alice") == 3000 * PEG
        assert vault.account("alice").debt == 3000 * PEG
        assert ledger.total_supply("PEG") == Decimal(3000 * PEG)
        assert ledger.get_balance(SYSTEM_WALLET, "PEG") == Decimal(-3000 * PEG)

    def test_health_factor_after_mint(self, alice_position):
        assert alice_position.health_factor("alice") == ALICE_HF

    def test_mint_up_to_capacity(self, ledger, alice_position):
        alice_position.mint_debt("alice", ALICE_CAPACITY)
        assert alice_position.health_factor("alice") == HEALTH_FACTOR_PRECISION

    def test_mint_past_capacity(self, ledger, alice_position):
        snapshot = ledger.snapshot()
        with pytest.raises(SolvencyViolation) as exc_info:
            alice_position.mint_debt("alice", ALICE_CAPACITY + 1)
        assert exc_info.value.health_factor < HEALTH_FACTOR_PRECISION
        assert ledger.snapshot() == snapshot

    def test_mint_without_collateral(self, vault):
        with pytest.raises(SolvencyViolation) as exc_info:
            vault.mint_debt("bob", 1)
        assert exc_info.value.health_factor == 0

    def test_mint_with_broken_feed(self, ledger, oracle, alice_position):
        set_price(oracle, WETH_FEED, 0)
        with pytest.raises(OracleFault):
            alice_position.mint_debt("alice", PEG)

    def test_repeated_identical_mints_both_apply(self, ledger, alice_position):
        alice_position.mint_debt("alice", PEG)
        alice_position.mint_debt("alice", PEG)
        assert alice_position.account("alice").debt == 3002 * PEG


class TestWithdraw:

    def test_debt_free_withdraw_all(self, ledger, vault):
        open_position(ledger, vault, "bob", 2 * ETH)
        vault.withdraw_collateral("bob", "bob", 2 * ETH)
        assert balance_of(ledger, "WETH", "bob") == 2 * ETH
        assert vault.account("bob") == AccountLedger(0, 0)
        assert "bob" in vault.accounts()

    def test_withdraw_to_receiver(self, ledger, alice_position):
        alice_position.withdraw_collateral("alice", "carol", ETH // 10)
        assert balance_of(ledger, "WETH", "carol") == ETH // 10
        assert alice_position.account("alice").collateral == 3 * ETH - ETH // 10

    def test_withdraw_maximum(self, ledger, alice_position):
        alice_position.withdraw_collateral("alice", "alice", ALICE_MAX_WITHDRAW)
        assert alice_position.health_factor("alice") == HEALTH_FACTOR_PRECISION

    def test_withdraw_past_maximum(self, ledger, alice_position):
        with pytest.raises(SolvencyViolation):
            alice_position.withdraw_collateral("alice", "alice", ALICE_MAX_WITHDRAW + 1)

    def test_withdraw_more_than_deposited(self, alice_position):
        with pytest.raises(InsufficientCollateral) as exc_info:
            alice_position.withdraw_collateral("alice", "alice", 3 * ETH + 1)
        assert exc_info.value.requested == 3 * ETH + 1

    def test_receiver_must_be_registered(self, alice_position):
        with pytest.raises(InvalidAddress):
            alice_position.withdraw_collateral("alice", "nowhere", 1)


class TestRepay:

    def test_own_repayment(self, ledger, alice_position):
        approve(ledger, "PEG", "alice", VAULT, 1000 * PEG)
        alice_position.repay_debt("alice", "alice", 1000 * PEG)
        assert alice_position.account("alice").debt == 2000 * PEG
        assert balance_of(ledger, "PEG", "alice") == 2000 * PEG
        assert ledger.total_supply("PEG") == Decimal(2000 * PEG)
        assert allowance(ledger, "PEG", "alice", VAULT) == 0

    def test_third_party_repayment(self, ledger, alice_position):
        open_position(ledger, alice_position, "bob", 10 * ETH, 500 * PEG)
        approve(ledger, "PEG", "bob", VAULT, 500 * PEG)
        alice_position.repay_debt("bob", "alice", 500 * PEG)
        assert alice_position.account("alice").debt == 2500 * PEG
        assert alice_position.account("bob").debt == 500 * PEG
        assert balance_of(ledger, "PEG", "bob") == 0

    def test_full_repayment_restores_max_health(self, ledger, alice_position):
        approve(ledger, "PEG", "alice", VAULT, 3000 * PEG)
        alice_position.repay_debt("alice", "alice", 3000 * PEG)
        assert alice_position.health_factor("alice") == MAX_HEALTH_FACTOR

    def test_repay_more_than_debt(self, ledger, alice_position):
        approve(ledger, "PEG", "alice", VAULT, 4000 * PEG)
        with pytest.raises(ExcessiveRepayment):
            alice_position.repay_debt("alice", "alice", 3000 * PEG + 1)

    def test_repay_without_allowance(self, alice_position):
        with pytest.raises(InsufficientAllowance):
            alice_position.repay_debt("alice", "alice", PEG)

    def test_repay_is_allowed_while_oracle_is_down(self, ledger, oracle, alice_position):
        set_price(oracle, WETH_FEED, -1)
        approve(ledger, "PEG", "alice", VAULT, PEG)
        alice_position.repay_debt("alice", "alice", PEG)
        assert alice_position.account("alice").debt == 2999 * PEG


class TestReads:

    def test_status(self, alice_position):
        status = alice_position.status("alice")
        assert status.collateral == 3 * ETH
        assert status.debt == 3000 * PEG
        assert status.collateral_value == ALICE_VALUE
        assert status.health_factor == ALICE_HF
        assert status.max_mintable == ALICE_CAPACITY
        assert status.max_withdrawable == ALICE_MAX_WITHDRAW
        assert status.liquidatable is False

    def test_collateral_value(self, alice_position):
        assert alice_position.collateral_value("alice") == ALICE_VALUE

    def test_unknown_account_status(self, vault):
        status = vault.status("nobody")
        assert status.health_factor == MAX_HEALTH_FACTOR
        assert status.max_mintable == 0

    def test_terms(self, vault):
        assert vault.terms.collateral_asset == "WETH"
        assert vault.owner == "gov"
        assert vault.peg_currency == "PEG"

    def test_facade_for_unknown_symbol(self, ledger, valuation):
        with pytest.raises(InvalidReference):
            CollateralVault(ledger, valuation, "VAULT-NOPE")
