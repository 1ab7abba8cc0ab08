"""
test_events.py - Unit tests for audit events read back from the transaction log
"""

import pytest

from pegvault import VaultEvent, events_for, EVENT_TYPES, build_transaction, Move
from tests.helpers import ETH, PEG, GOV, VAULT, T0, approve, open_position


class TestEventsFor:

    def test_lifecycle_order(self, ledger, alice_position):
        types = [e.event_type for e in events_for(ledger)]
        assert types == [
            "REGISTRY_CREATED", "VAULT_DEPLOYED", "APPROVAL", "DEPOSIT", "MINT",
        ]

    def test_filter_by_unit(self, ledger, alice_position):
        assert [e.event_type for e in events_for(ledger, "WETH")] == ["APPROVAL"]

    def test_filter_by_type(self, ledger, alice_position):
        (mint,) = events_for(ledger, VAULT, "MINT")
        assert mint["account"] == "alice"
        assert mint["amount"] == 3000 * PEG
        assert mint["health_factor"] == 1058137545245146429

    def test_sequence_and_time(self, ledger, alice_position):
        events = events_for(ledger)
        assert [e.sequence for e in events] == list(range(len(events)))
        assert all(e.timestamp == T0 for e in events)
        assert all(e.exec_id.startswith("exec:test:") for e in events)

    def test_every_recorded_type_is_known(self, ledger, alice_position):
        approve(ledger, "PEG", "alice", VAULT, PEG)
        alice_position.repay_debt("alice", "alice", PEG)
        alice_position.withdraw_collateral("alice", "alice", ETH // 100)
        assert {e.event_type for e in events_for(ledger)} <= set(EVENT_TYPES)


class TestVaultEvent:

    def test_untagged_transaction_has_no_event(self, ledger):
        ledger.execute_or_raise(build_transaction(ledger, [Move(1, "WETH", "system", "alice", "seed")]))
        assert VaultEvent.from_transaction(ledger.transaction_log[-1]) is None
        assert events_for(ledger) == []

    def test_missing_detail(self, ledger, vault):
        open_position(ledger, vault, "bob", ETH)
        (event,) = vault.events("DEPOSIT")
        with pytest.raises(KeyError):
            event["receiver"]

    def test_frozen(self, ledger, registry):
        (event,) = registry.events()
        with pytest.raises(AttributeError):
            event.event_type = "OTHER"
        assert event.source_id == GOV
