"""Event log read model."""

import json

from pydantic import BaseModel, ConfigDict

from swapcore.ledger.models import SettlementEvent


class EventRecord(BaseModel):
    """One entry of the append-only event log."""

    model_config = ConfigDict(frozen=True)

    id: int
    registry: str
    event_type: str
    payload: dict
    timestamp: int

    @classmethod
    def from_record(cls, event: SettlementEvent) -> "EventRecord":
        return cls(
            id=event.id,
            registry=event.registry_name,
            event_type=event.event_type,
            payload=json.loads(event.payload),
            timestamp=event.timestamp,
        )
