"""
Idempotency Conformance Tests

INVARIANT: A pending transaction applies at most once, while repeating an
operation applies again.

    execute(tx) == APPLIED ⟹ execute(tx) == ALREADY_APPLIED, state unchanged
    op(args); op(args) ⟹ two transactions with distinct intent ids
"""

from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from pegvault import ExecuteResult
from pegvault.units.collateral_vault import compute_deposit, compute_mint
from tests.helpers import ETH, PEG, VAULT, approve, fund, make_system, open_position


class TestIdempotencyProperties:

    @given(st.integers(min_value=1, max_value=10 * ETH))
    @settings(max_examples=50, deadline=None)
    def test_replayed_deposit_is_ignored(self, amount):
        """
        PROPERTY: Executing the same pending deposit twice moves collateral once.
        """
        ledger, _, vault = make_system()
        fund(ledger, "alice", "WETH", 2 * amount)
        approve(ledger, "WETH", "alice", VAULT, 2 * amount)
        pending = compute_deposit(ledger, VAULT, "alice", amount)

        assert ledger.execute(pending) == ExecuteResult.APPLIED
        snapshot = ledger.snapshot()
        assert ledger.execute(pending) == ExecuteResult.ALREADY_APPLIED
        assert ledger.snapshot() == snapshot
        assert vault.account("alice").collateral == amount

    @given(st.integers(min_value=1, max_value=50 * PEG), st.integers(min_value=2, max_value=5))
    @settings(max_examples=50, deadline=None)
    def test_repeated_mints_all_apply(self, amount, times):
        """
        PROPERTY: n identical mint calls add n * amount of debt.
        """
        ledger, _, vault = make_system()
        open_position(ledger, vault, "alice", 10 * ETH)
        for _ in range(times):
            vault.mint_debt("alice", amount)

        assert vault.account("alice").debt == times * amount
        assert ledger.get_balance("alice", "PEG") == Decimal(times * amount)
        intents = [tx.intent_id for tx in ledger.transaction_log if tx.origin.event_type == "MINT"]
        assert len(set(intents)) == times


class TestIdempotencyExamples:

    def test_stale_mint_after_another_mint(self, ledger, valuation, alice_position):
        """A mint built before another operation is rejected, not double-applied."""
        stale = compute_mint(ledger, valuation, VAULT, "alice", 2 * PEG)
        alice_position.mint_debt("alice", PEG)
        assert ledger.execute(stale) == ExecuteResult.REJECTED
        assert ledger.last_rejection == f"stale state for {VAULT}"
        assert alice_position.account("alice").debt == 3001 * PEG
