"""Bilateral time-locked atomic swaps.

An initiator locks ``amount_x`` of asset X for a named participant. Before the
timeout the participant can complete the swap by paying ``amount_y`` of asset
Y, which releases X to the participant and Y to the initiator in the same
transaction. From the timeout on, only the initiator can act, by cancelling
and taking X back. There is no arbiter; the timeout is the only recovery path.

    created --complete (now < timeout)--> completed
    created --cancel   (now >= timeout)-> cancelled
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swapcore.assets import TokenPair
from swapcore.config import Settings, get_settings
from swapcore.contracts.swaps import SwapDetails
from swapcore.errors import (
    AlreadyTerminal,
    InvalidTimeout,
    NotAuthorized,
    NotFound,
    SwapExpired,
    SwapNotExpired,
)
from swapcore.events import EventSink, EventType, swap_registry_name
from swapcore.fixed_point import check_u64, checked_add, require_positive
from swapcore.ledger.database import get_session_factory
from swapcore.ledger.models import AtomicSwap
from swapcore.ledger.repository import LedgerRepository
from swapcore.ledger.unit_of_work import read_scope, settlement_scope
from swapcore.utils.clock import Clock, system_clock
from swapcore.utils.locks import account_key, swap_counter_key, swap_key

logger = logging.getLogger(__name__)


class AtomicSwapEngine:
    """Owns the per-initiator table of time-locked swaps."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._session_factory = session_factory or get_session_factory()
        self._clock = clock or system_clock

    @property
    def default_timeout(self) -> int:
        return self.settings.default_swap_timeout_seconds

    async def initiate(
        self,
        initiator: str,
        participant: str,
        amount_x: int,
        amount_y_expected: int,
        timeout_seconds: int = 0,
        *,
        pair: TokenPair,
    ) -> int:
        """Lock ``amount_x`` for ``participant`` and return the new swap id."""
        pair = TokenPair.coerce(pair, distinct=False)
        require_positive(amount_x, "amount_x")
        require_positive(amount_y_expected, "amount_y_expected")
        if timeout_seconds < 0:
            raise InvalidTimeout(f"timeout_seconds must not be negative, got {timeout_seconds}")

        async with settlement_scope(
            self._session_factory,
            swap_counter_key(initiator),
            account_key(initiator),
            operation="swap.initiate",
            lock_timeout=self.settings.lock_timeout_seconds,
        ) as repo:
            now = self._clock()
            timeout = checked_add(now, timeout_seconds or self.default_timeout)

            coin_x = await repo.withdraw(initiator, pair.x, amount_x)

            registry = await repo.get_or_create_swap_registry(initiator)
            swap_id = registry.next_swap_id
            registry.next_swap_id = swap_id + 1

            swap = AtomicSwap(
                initiator=initiator,
                swap_id=swap_id,
                participant=participant,
                asset_x=pair.x,
                asset_y=pair.y,
                amount_x=amount_x,
                amount_y=amount_y_expected,
                held_x=0,
                held_y=0,
                timeout=timeout,
                completed=False,
                cancelled=False,
                created_at=now,
            )
            swap.custody_x.absorb(coin_x)
            await repo.add_swap(swap)

            await EventSink(repo).emit(
                swap_registry_name(initiator),
                EventType.SWAP_INITIATED,
                now,
                swap_id=swap_id,
                initiator=initiator,
                participant=participant,
                asset_x=pair.x,
                asset_y=pair.y,
                amount_x=amount_x,
                amount_y=amount_y_expected,
                timeout=timeout,
            )

        logger.info(
            f"Swap {initiator}#{swap_id} initiated: {amount_x} {pair.x} for "
            f"{amount_y_expected} {pair.y} from {participant}, expires at {timeout}"
        )
        return swap_id

    async def complete(self, participant: str, initiator: str, swap_id: int) -> SwapDetails:
        """Pay ``amount_y`` and receive the locked ``amount_x``, before the timeout."""
        async with settlement_scope(
            self._session_factory,
            swap_key(initiator, swap_id),
            account_key(participant),
            account_key(initiator),
            operation="swap.complete",
            lock_timeout=self.settings.lock_timeout_seconds,
        ) as repo:
            swap = await self._require_swap(repo, initiator, swap_id)
            if swap.participant != participant:
                raise NotAuthorized(
                    f"{participant} is not the participant of swap {initiator}#{swap_id}"
                )
            self._require_open(swap)

            now = self._clock()
            if now >= swap.timeout:
                raise SwapExpired(
                    f"Swap {initiator}#{swap_id} expired at {swap.timeout}; "
                    "only the initiator can cancel it now"
                )

            coin_y = await repo.withdraw(participant, swap.asset_y, swap.amount_y)
            swap.custody_y.absorb(coin_y)

            # Both legs leave custody together; nothing is committed in between.
            await repo.deposit(participant, swap.custody_x.release_all())
            await repo.deposit(initiator, swap.custody_y.release_all())
            swap.completed = True
            swap.settled_at = now

            await EventSink(repo).emit(
                swap_registry_name(initiator),
                EventType.SWAP_COMPLETED,
                now,
                swap_id=swap_id,
                initiator=initiator,
                participant=participant,
                amount_x=swap.amount_x,
                amount_y=swap.amount_y,
            )
            details = SwapDetails.from_record(swap)

        logger.info(f"Swap {initiator}#{swap_id} completed by {participant}")
        return details

    async def cancel(self, initiator: str, swap_id: int) -> SwapDetails:
        """Refund the locked ``amount_x`` to the initiator, at or after the timeout."""
        async with settlement_scope(
            self._session_factory,
            swap_key(initiator, swap_id),
            account_key(initiator),
            operation="swap.cancel",
            lock_timeout=self.settings.lock_timeout_seconds,
        ) as repo:
            swap = await self._require_swap(repo, initiator, swap_id)
            if swap.initiator != initiator:
                raise NotAuthorized(f"{initiator} did not initiate swap #{swap_id}")
            self._require_open(swap)

            now = self._clock()
            if now < swap.timeout:
                raise SwapNotExpired(
                    f"Swap {initiator}#{swap_id} cannot be cancelled before {swap.timeout}"
                )

            await repo.deposit(initiator, swap.custody_x.release_all())
            swap.cancelled = True
            swap.settled_at = now

            await EventSink(repo).emit(
                swap_registry_name(initiator),
                EventType.SWAP_CANCELLED,
                now,
                swap_id=swap_id,
                initiator=initiator,
                participant=swap.participant,
                amount_x=swap.amount_x,
            )
            details = SwapDetails.from_record(swap)

        logger.info(
            f"Swap {initiator}#{swap_id} cancelled, {details.amount_x} {details.asset_x} refunded"
        )
        return details

    # Queries
    async def get_swap_details(self, initiator: str, swap_id: int) -> SwapDetails:
        async with read_scope(self._session_factory) as repo:
            swap = await self._require_swap(repo, initiator, swap_id)
            return SwapDetails.from_record(swap)

    async def is_expired(self, initiator: str, swap_id: int) -> bool:
        async with read_scope(self._session_factory) as repo:
            swap = await self._require_swap(repo, initiator, swap_id)
            return self._clock() >= swap.timeout

    async def next_swap_id(self, initiator: str) -> int:
        async with read_scope(self._session_factory) as repo:
            registry = await repo.get_swap_registry(initiator)
            return registry.next_swap_id if registry else 0

    async def list_swaps(self, initiator: str) -> list[SwapDetails]:
        async with read_scope(self._session_factory) as repo:
            return [SwapDetails.from_record(swap) for swap in await repo.list_swaps(initiator)]

    @staticmethod
    async def _require_swap(repo: LedgerRepository, initiator: str, swap_id: int) -> AtomicSwap:
        check_u64(swap_id, "swap_id")
        swap = await repo.get_swap(initiator, swap_id)
        if swap is None:
            raise NotFound(f"Swap {initiator}#{swap_id} not found")
        return swap

    @staticmethod
    def _require_open(swap: AtomicSwap) -> None:
        if swap.is_terminal:
            raise AlreadyTerminal(
                f"Swap {swap.initiator}#{swap.swap_id} is already {swap.state.value}"
            )
