"""Structured event records emitted by the settlement engines.

Records are appended to the ledger's event log inside the same transaction as
the operation that produced them, so a rolled-back operation leaves no
record behind. The engines only ever write here.
"""

import logging
from enum import Enum

from swapcore.ledger.repository import LedgerRepository

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Kinds of records in the event log."""

    SWAP_INITIATED = "swap_initiated"
    SWAP_COMPLETED = "swap_completed"
    SWAP_CANCELLED = "swap_cancelled"
    POOL_CREATED = "pool_created"
    POOL_SWAP = "pool_swap"
    LIQUIDITY_ADDED = "liquidity_added"
    LIQUIDITY_REMOVED = "liquidity_removed"
    POOL_FEES_COLLECTED = "pool_fees_collected"
    AGGREGATOR_INITIALIZED = "aggregator_initialized"
    AGGREGATED_SWAP = "aggregated_swap"
    ROUTE_COMPARISON = "route_comparison"
    VENUE_TOGGLED = "venue_toggled"
    AGGREGATOR_FEES_COLLECTED = "aggregator_fees_collected"


def swap_registry_name(initiator: str) -> str:
    return f"swaps:{initiator}"


def pool_registry_name(admin: str, asset_x: str, asset_y: str) -> str:
    return f"pool:{admin}:{asset_x}/{asset_y}"


def aggregator_registry_name(admin: str) -> str:
    return f"aggregator:{admin}"


class EventSink:
    """Append-only writer for one operation's records."""

    def __init__(self, repository: LedgerRepository):
        self.repository = repository

    async def emit(self, registry: str, event_type: EventType, timestamp: int, **fields) -> None:
        payload = {key: _plain(value) for key, value in fields.items()}
        payload["timestamp"] = timestamp
        await self.repository.record_event(registry, event_type.value, payload, timestamp)
        logger.debug(f"Event {event_type.value} on {registry}: {payload}")


def _plain(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value
