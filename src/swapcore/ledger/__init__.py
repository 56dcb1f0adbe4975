"""Ledger module for account balances, custody records and the event log."""

from swapcore.ledger.custody import Coin
from swapcore.ledger.database import (
    build_engine,
    close_db,
    create_session_factory,
    get_session_factory,
    init_db,
)
from swapcore.ledger.models import (
    AtomicSwap,
    Balance,
    EscrowPool,
    SettlementEvent,
    SwapRegistry,
    SwapState,
    Venue,
    VenueRegistry,
)
from swapcore.ledger.repository import LedgerRepository
from swapcore.ledger.unit_of_work import read_scope, settlement_scope

__all__ = [
    # Custody
    "Coin",
    # Models
    "AtomicSwap",
    "Balance",
    "EscrowPool",
    "SettlementEvent",
    "SwapRegistry",
    "Venue",
    "VenueRegistry",
    # Enums
    "SwapState",
    # Database
    "build_engine",
    "close_db",
    "create_session_factory",
    "get_session_factory",
    "init_db",
    "LedgerRepository",
    "read_scope",
    "settlement_scope",
]
