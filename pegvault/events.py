"""
events.py - Typed audit records from the transaction log

Every vault, registry, and token operation executes as one Transaction
whose origin names the event and carries its details. This module turns
the log back into plain event records for inspection and reporting.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .core import Transaction


EVENT_TYPES = (
    "DEPOSIT",
    "MINT",
    "WITHDRAW",
    "REPAY",
    "LIQUIDATE",
    "PARAMETER_UPDATED",
    "OWNERSHIP_TRANSFERRED",
    "VAULT_DEPLOYED",
    "REGISTRY_CREATED",
    "APPROVAL",
    "MINTER_GRANTED",
    "ISSUE",
    "BURN",
    "TRANSFER",
)


@dataclass(frozen=True, slots=True)
class VaultEvent:
    """
    One executed operation.

    Attributes:
        sequence: Ledger sequence number of the transaction
        event_type: Operation name, one of EVENT_TYPES
        unit_symbol: Unit whose operation produced the event
        source_id: Caller (account, liquidator, governance)
        timestamp: Ledger time of execution
        details: Operation parameters (amounts, old/new values)
        exec_id: Execution id of the transaction
    """
    sequence: int
    event_type: str
    unit_symbol: str
    source_id: str
    timestamp: datetime
    details: Dict[str, Any]
    exec_id: str

    @classmethod
    def from_transaction(cls, tx: Transaction) -> Optional[VaultEvent]:
        """Event for tx, or None if its origin names no event."""
        origin = tx.origin
        if not origin.event_type or not origin.unit_symbol:
            return None
        return cls(
            sequence=tx.sequence_number,
            event_type=origin.event_type,
            unit_symbol=origin.unit_symbol,
            source_id=origin.source_id,
            timestamp=tx.execution_time,
            details=origin.details_dict,
            exec_id=tx.exec_id,
        )

    def __getitem__(self, key: str) -> Any:
        return self.details[key]


def events_from(transactions: Iterable[Transaction]) -> List[VaultEvent]:
    events = []
    for tx in transactions:
        event = VaultEvent.from_transaction(tx)
        if event is not None:
            events.append(event)
    return events


def events_for(ledger, symbol: Optional[str] = None, event_type: Optional[str] = None) -> List[VaultEvent]:
    """
    Events recorded in ledger, in execution order.

    Args:
        ledger: Anything with a transaction_log (a Ledger)
        symbol: Only events produced by this unit
        event_type: Only events of this type

    Example:
        liquidations = events_for(ledger, "VAULT-WETH", "LIQUIDATE")
        seized = sum(e["seized"] for e in liquidations)
    """
    return [
        event for event in events_from(ledger.transaction_log)
        if (symbol is None or event.unit_symbol == symbol)
        and (event_type is None or event.event_type == event_type)
    ]
