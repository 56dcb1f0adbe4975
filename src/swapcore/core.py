"""Settlement core facade.

Wires the atomic swap engine, the escrow pool engine and the route
aggregator to one ledger database and one clock, and exposes the ledger
funding and read-back operations the external collaborators use.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swapcore.atomic import AtomicSwapEngine
from swapcore.audit import audit_custody
from swapcore.config import Settings, get_settings
from swapcore.contracts.events import EventRecord
from swapcore.events import EventType
from swapcore.fixed_point import require_positive
from swapcore.ledger.database import get_session_factory
from swapcore.ledger.unit_of_work import read_scope, settlement_scope
from swapcore.pool import EscrowPoolEngine
from swapcore.routing import QuoteSource, RouteAggregator, VenueExecutor, create_aggregator
from swapcore.utils.clock import Clock, system_clock
from swapcore.utils.locks import account_key

logger = logging.getLogger(__name__)


class SettlementCore:
    """The three settlement mechanisms sharing one ledger."""

    def __init__(
        self,
        swaps: AtomicSwapEngine,
        pools: EscrowPoolEngine,
        aggregator: RouteAggregator,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
    ):
        self.swaps = swaps
        self.pools = pools
        self.aggregator = aggregator
        self.settings = settings
        self._session_factory = session_factory

    async def credit(self, owner: str, asset: str, amount: int) -> int:
        """Fund an account from outside the ledger; returns the new balance."""
        require_positive(amount, "amount")
        async with settlement_scope(
            self._session_factory,
            account_key(owner),
            operation="ledger.credit",
            lock_timeout=self.settings.lock_timeout_seconds,
        ) as repo:
            balance = await repo.credit_balance(owner, asset, amount)
            new_amount = balance.amount

        logger.info(f"Credited {amount} {asset.upper()} to {owner} (balance {new_amount})")
        return new_amount

    async def balance_of(self, owner: str, asset: str) -> int:
        async with read_scope(self._session_factory) as repo:
            return await repo.balance_of(owner, asset)

    async def balances(self, owner: str) -> dict[str, int]:
        """Every asset balance held by ``owner``."""
        async with read_scope(self._session_factory) as repo:
            return {balance.asset: balance.amount for balance in await repo.get_all_balances(owner)}

    async def list_events(
        self,
        registry: Optional[str] = None,
        event_type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[EventRecord]:
        """Read back the event log, oldest first."""
        kind = event_type.value if isinstance(event_type, EventType) else event_type
        async with read_scope(self._session_factory) as repo:
            events = await repo.list_events(registry, kind, limit=limit, offset=offset)
            return [EventRecord.from_record(event) for event in events]

    async def audit(self) -> list[str]:
        """Run the custody audit over committed state."""
        async with read_scope(self._session_factory) as repo:
            return await audit_custody(repo)


def create_core(
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    clock: Optional[Clock] = None,
    settings: Optional[Settings] = None,
    quote_source: Optional[QuoteSource] = None,
    executor: Optional[VenueExecutor] = None,
) -> SettlementCore:
    """Create a settlement core from settings.

    Args:
        session_factory: Session factory for the ledger database
        clock: Time source shared by every engine
        settings: Settings to use instead of the cached ones
        quote_source: Quote source for the aggregator (default from settings)
        executor: Venue executor for the aggregator

    Returns:
        Configured SettlementCore
    """
    settings = settings or get_settings()
    session_factory = session_factory or get_session_factory()
    clock = clock or system_clock

    return SettlementCore(
        swaps=AtomicSwapEngine(session_factory, clock=clock, settings=settings),
        pools=EscrowPoolEngine(session_factory, clock=clock, settings=settings),
        aggregator=create_aggregator(
            quote_source=quote_source,
            executor=executor,
            session_factory=session_factory,
            clock=clock,
            settings=settings,
        ),
        session_factory=session_factory,
        settings=settings,
    )
