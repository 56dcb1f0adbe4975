"""Route aggregation across registered venues.

The aggregator keeps a registry of venues (ids 1..N, fixed at
initialization), asks the quote source for each enabled venue's output and
either routes to the best one or to a venue the caller picks. A fee of
``aggregator_fee_bps`` is taken from the input and paid to the admin before
the remainder is handed to the venue executor.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swapcore.assets import TokenPair
from swapcore.auth import require_admin
from swapcore.config import Settings, get_settings
from swapcore.contracts.routes import (
    AggregatedSwapResult,
    AggregatorStats,
    BestRoute,
    PriceComparison,
    RouteRecord,
    VenueInfo,
    VenueStats,
)
from swapcore.errors import (
    AlreadyInitialized,
    InsufficientLiquidity,
    InvalidVenueId,
    NoRoutesFound,
    NotInitialized,
    QuoteSourceError,
    SlippageExceeded,
    VenueUnavailable,
)
from swapcore.events import EventSink, EventType, aggregator_registry_name
from swapcore.fixed_point import (
    apply_bps,
    check_u64,
    checked_add,
    checked_sub,
    diff_bps,
    require_positive,
)
from swapcore.ledger.database import get_session_factory
from swapcore.ledger.models import Venue, VenueRegistry
from swapcore.ledger.repository import LedgerRepository
from swapcore.ledger.unit_of_work import read_scope, settlement_scope
from swapcore.routing.base import QuoteSource, VenueExecutor, VenueQuote
from swapcore.routing.executor import LedgerVenueExecutor
from swapcore.utils.clock import Clock, system_clock
from swapcore.utils.locks import account_key, registry_key

logger = logging.getLogger(__name__)


class RouteAggregator:
    """Compares venue outputs and routes swaps to the chosen venue."""

    def __init__(
        self,
        quote_source: QuoteSource,
        executor: Optional[VenueExecutor] = None,
        admin: Optional[str] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        clock: Optional[Clock] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.admin = admin or self.settings.aggregator_admin
        self.quote_source = quote_source
        self.executor = executor or LedgerVenueExecutor(quote_source, self.admin)
        self._session_factory = session_factory or get_session_factory()
        self._clock = clock or system_clock

    @property
    def fee_bps(self) -> int:
        return self.settings.aggregator_fee_bps

    @property
    def registry_name(self) -> str:
        return aggregator_registry_name(self.admin)

    def estimated_fee(self, amount_in: int) -> int:
        """Aggregator fee charged on ``amount_in``."""
        return apply_bps(amount_in, self.fee_bps)

    async def initialize(self, caller: str) -> list[VenueInfo]:
        """Create the venue registry with every configured venue enabled."""
        require_admin(caller, self.admin, self.registry_name)
        venue_names = self.settings.venues

        async with self._scope(caller, operation="aggregator.initialize") as repo:
            if await repo.get_venue_registry(self.admin) is not None:
                raise AlreadyInitialized(f"Aggregator already initialized for {self.admin}")

            now = self._clock()
            registry = await repo.create_venue_registry(self.admin, venue_names, now)
            await EventSink(repo).emit(
                self.registry_name,
                EventType.AGGREGATOR_INITIALIZED,
                now,
                admin=self.admin,
                venues=venue_names,
            )
            venues = [VenueInfo.from_record(venue) for venue in registry.venues]

        logger.info(f"Aggregator initialized for {self.admin} with {len(venues)} venues")
        return venues

    # Route queries
    async def find_best_route(self, amount_in: int, *, pair: TokenPair) -> BestRoute:
        """Venue with the greatest output; the lowest id wins ties."""
        pair = TokenPair.coerce(pair)
        require_positive(amount_in, "amount_in")
        async with read_scope(self._session_factory) as repo:
            registry = await self._require_registry(repo)
            venue, quote = await self._best_route(registry, amount_in, pair)
        return BestRoute(
            venue_id=venue.venue_id,
            amount_out=quote.amount_out,
            price_impact_bps=quote.price_impact_bps,
        )

    async def get_all_routes(self, amount_in: int, *, pair: TokenPair) -> list[RouteRecord]:
        """Every enabled venue that can fill ``amount_in``, in id order."""
        pair = TokenPair.coerce(pair)
        require_positive(amount_in, "amount_in")
        async with read_scope(self._session_factory) as repo:
            registry = await self._require_registry(repo)
            routes = await self._collect_routes(registry, amount_in, pair)

        fee = self.estimated_fee(amount_in)
        return [
            RouteRecord(
                venue_id=venue.venue_id,
                venue_name=venue.name,
                amount_in=amount_in,
                amount_out=quote.amount_out,
                price_impact_bps=quote.price_impact_bps,
                estimated_fee=fee,
            )
            for venue, quote in routes
        ]

    async def compare_prices(self, amount_in: int, *, pair: TokenPair) -> PriceComparison:
        """Best against worst output across the enabled venues."""
        pair = TokenPair.coerce(pair)
        require_positive(amount_in, "amount_in")
        async with read_scope(self._session_factory) as repo:
            registry = await self._require_registry(repo)
            routes = await self._collect_routes(registry, amount_in, pair)

        if not routes:
            raise NoRoutesFound(f"No venue can fill {amount_in} {pair.x} -> {pair.y}")
        best_venue, best_quote = _pick_best(routes)
        worst_output = min(quote.amount_out for _, quote in routes)
        return PriceComparison(
            best_venue_id=best_venue.venue_id,
            best_output=best_quote.amount_out,
            worst_output=worst_output,
            price_diff_bps=diff_bps(best_quote.amount_out, worst_output),
        )

    # Routed swaps
    async def swap_best_route(
        self,
        user: str,
        amount_in: int,
        min_amount_out: int,
        *,
        pair: TokenPair,
    ) -> AggregatedSwapResult:
        """Route ``amount_in`` to the best venue and credit the output to ``user``."""
        pair = TokenPair.coerce(pair)
        require_positive(amount_in, "amount_in")
        check_u64(min_amount_out, "min_amount_out")

        venue_ids = await self._registered_venue_ids()
        async with self._scope(
            user, operation="aggregator.swap_best_route", venue_ids=venue_ids
        ) as repo:
            registry = await self._require_registry(repo)
            routes = await self._collect_routes(registry, amount_in, pair)
            if not routes:
                raise NoRoutesFound(f"No venue can fill {amount_in} {pair.x} -> {pair.y}")
            venue, quote = _pick_best(routes)
            if quote.amount_out < min_amount_out:
                raise SlippageExceeded(quote.amount_out, min_amount_out)

            now = self._clock()
            await EventSink(repo).emit(
                self.registry_name,
                EventType.ROUTE_COMPARISON,
                now,
                user=user,
                amount_in=amount_in,
                venues_compared=len(routes),
                best_venue_id=venue.venue_id,
                best_output=quote.amount_out,
                worst_output=min(q.amount_out for _, q in routes),
            )
            result = await self._execute(
                repo, registry, venue, user, amount_in, min_amount_out, pair, now
            )

        logger.info(
            f"Routed {amount_in} {pair.x} for {user} via {venue.name}: "
            f"{result.amount_out} {pair.y} (fee {result.fee})"
        )
        return result

    async def swap_specific_venue(
        self,
        user: str,
        venue_id: int,
        amount_in: int,
        min_amount_out: int,
        *,
        pair: TokenPair,
    ) -> AggregatedSwapResult:
        """Route ``amount_in`` to ``venue_id`` without comparing venues."""
        pair = TokenPair.coerce(pair)
        require_positive(amount_in, "amount_in")
        check_u64(min_amount_out, "min_amount_out")

        async with self._scope(
            user, operation="aggregator.swap_specific_venue", venue_ids=[venue_id]
        ) as repo:
            registry = await self._require_registry(repo)
            venue = _find_venue(registry, venue_id)
            if not venue.enabled:
                raise VenueUnavailable(f"Venue {venue.name} is disabled")
            quote = await self.quote_source.get_quote(venue.venue_id, amount_in, pair)
            if not quote.has_liquidity:
                raise VenueUnavailable(f"{venue.name} cannot fill {amount_in} {pair.x}")
            if quote.amount_out < min_amount_out:
                raise SlippageExceeded(quote.amount_out, min_amount_out)

            result = await self._execute(
                repo, registry, venue, user, amount_in, min_amount_out, pair, self._clock()
            )

        logger.info(
            f"Routed {amount_in} {pair.x} for {user} via {venue.name} (direct): "
            f"{result.amount_out} {pair.y} (fee {result.fee})"
        )
        return result

    async def _execute(
        self,
        repo: LedgerRepository,
        registry: VenueRegistry,
        venue: Venue,
        user: str,
        amount_in: int,
        min_amount_out: int,
        pair: TokenPair,
        now: int,
    ) -> AggregatedSwapResult:
        coin_in = await repo.withdraw(user, pair.x, amount_in)
        fee_coin = coin_in.extract(self.estimated_fee(amount_in))
        fee = fee_coin.value
        amount_routed = coin_in.value
        await repo.deposit(self.admin, fee_coin)
        registry.fees_collected = checked_add(registry.fees_collected, fee)

        coin_out = await self.executor.execute(VenueInfo.from_record(venue), coin_in, pair, repo)
        if coin_out.asset != pair.y:
            raise VenueUnavailable(f"{venue.name} paid out {coin_out.asset}, expected {pair.y}")
        amount_out = coin_out.value
        if amount_out < min_amount_out:
            raise SlippageExceeded(amount_out, min_amount_out)
        await repo.deposit(user, coin_out)

        venue.total_volume = checked_add(venue.total_volume, amount_in)
        venue.swap_count += 1
        registry.total_volume = checked_add(registry.total_volume, amount_in)
        registry.total_swaps += 1

        await EventSink(repo).emit(
            self.registry_name,
            EventType.AGGREGATED_SWAP,
            now,
            user=user,
            venue_id=venue.venue_id,
            venue_name=venue.name,
            asset_in=pair.x,
            asset_out=pair.y,
            amount_in=amount_in,
            fee=fee,
            amount_routed=amount_routed,
            amount_out=amount_out,
        )
        return AggregatedSwapResult(
            user=user,
            venue_id=venue.venue_id,
            asset_in=pair.x,
            asset_out=pair.y,
            amount_in=amount_in,
            fee=fee,
            amount_routed=amount_routed,
            amount_out=amount_out,
            timestamp=now,
        )

    # Admin operations
    async def toggle_venue(self, caller: str, venue_id: int, enabled: bool) -> VenueInfo:
        """Enable or disable a venue for every route computation."""
        async with self._scope(caller, operation="aggregator.toggle_venue") as repo:
            registry = await self._require_registry(repo)
            require_admin(caller, registry.admin, self.registry_name)
            venue = _find_venue(registry, venue_id)
            venue.enabled = enabled

            await EventSink(repo).emit(
                self.registry_name,
                EventType.VENUE_TOGGLED,
                self._clock(),
                venue_id=venue_id,
                venue_name=venue.name,
                enabled=enabled,
            )
            info = VenueInfo.from_record(venue)

        logger.info(f"Venue {info.name} ({venue_id}) {'enabled' if enabled else 'disabled'}")
        return info

    async def collect_fees(self, caller: str, amount: int) -> int:
        """Decrement the collected-fees counter; returns what remains.

        Fees are paid to the admin's balance as each swap settles, so this
        only records that ``amount`` of them has been accounted for.
        """
        require_positive(amount, "amount")
        async with self._scope(caller, operation="aggregator.collect_fees") as repo:
            registry = await self._require_registry(repo)
            require_admin(caller, registry.admin, self.registry_name)
            if amount > registry.fees_collected:
                raise InsufficientLiquidity(
                    f"Cannot collect {amount}: only {registry.fees_collected} recorded"
                )
            registry.fees_collected = checked_sub(registry.fees_collected, amount)
            remaining = registry.fees_collected

            await EventSink(repo).emit(
                self.registry_name,
                EventType.AGGREGATOR_FEES_COLLECTED,
                self._clock(),
                admin=caller,
                amount=amount,
                remaining=remaining,
            )

        logger.info(f"Aggregator fees collected by {caller}: {amount} ({remaining} remaining)")
        return remaining

    # Read API
    async def get_supported_venues(self) -> list[VenueInfo]:
        async with read_scope(self._session_factory) as repo:
            registry = await self._require_registry(repo)
            return [VenueInfo.from_record(venue) for venue in registry.venues]

    async def get_aggregator_stats(self) -> AggregatorStats:
        async with read_scope(self._session_factory) as repo:
            registry = await self._require_registry(repo)
            return AggregatorStats(
                total_volume=registry.total_volume,
                total_swaps=registry.total_swaps,
                fees_collected=registry.fees_collected,
            )

    async def get_venue_stats(self, venue_id: int) -> VenueStats:
        async with read_scope(self._session_factory) as repo:
            registry = await self._require_registry(repo)
            venue = _find_venue(registry, venue_id)
            return VenueStats(
                total_volume=venue.total_volume,
                swap_count=venue.swap_count,
                enabled=venue.enabled,
            )

    # Internals
    async def _collect_routes(
        self, registry: VenueRegistry, amount_in: int, pair: TokenPair
    ) -> list[tuple[Venue, VenueQuote]]:
        """Quote every enabled venue; failed or empty quotes are skipped."""
        routes = []
        errors = []

        for venue in registry.venues:
            if not venue.enabled:
                continue
            try:
                quote = await self.quote_source.get_quote(venue.venue_id, amount_in, pair)
            except QuoteSourceError as e:
                error_msg = f"{venue.name} quote failed: {e}"
                logger.warning(error_msg)
                errors.append(error_msg)
                continue
            if quote.has_liquidity:
                logger.debug(
                    f"Quote from {venue.name}: {amount_in} {pair.x} -> {quote.amount_out} {pair.y}"
                )
                routes.append((venue, quote))
            else:
                logger.debug(f"{venue.name} returned no output for {amount_in} {pair.x}")

        if not routes and errors:
            logger.error(f"No quotes available for {pair}. Errors: {'; '.join(errors)}")
        return routes

    async def _best_route(
        self, registry: VenueRegistry, amount_in: int, pair: TokenPair
    ) -> tuple[Venue, VenueQuote]:
        routes = await self._collect_routes(registry, amount_in, pair)
        if not routes:
            logger.warning(f"No routes found for {amount_in} {pair.x} -> {pair.y}")
            raise NoRoutesFound(f"No venue can fill {amount_in} {pair.x} -> {pair.y}")
        return _pick_best(routes)

    async def _require_registry(self, repo: LedgerRepository) -> VenueRegistry:
        registry = await repo.get_venue_registry(self.admin)
        if registry is None:
            raise NotInitialized(f"Aggregator not initialized for {self.admin}")
        return registry

    async def _registered_venue_ids(self) -> list[int]:
        """Ids of the registered venues, or of the configured ones before initialization."""
        async with read_scope(self._session_factory) as repo:
            registry = await repo.get_venue_registry(self.admin)
            if registry is None:
                return list(range(1, len(self.settings.venues) + 1))
            return [venue.venue_id for venue in registry.venues]

    def _scope(self, account: str, operation: str, venue_ids: Iterable[int] = ()):
        venue_keys = [
            account_key(owner)
            for venue_id in venue_ids
            for owner in self.executor.accounts(venue_id)
        ]
        return settlement_scope(
            self._session_factory,
            registry_key(self.admin),
            account_key(account),
            account_key(self.admin),
            *venue_keys,
            operation=operation,
            lock_timeout=self.settings.lock_timeout_seconds,
        )


def _pick_best(routes: list[tuple[Venue, VenueQuote]]) -> tuple[Venue, VenueQuote]:
    # Linear scan in id order with a strict comparison keeps the lowest id on ties
    best = routes[0]
    for route in routes[1:]:
        if route[1].amount_out > best[1].amount_out:
            best = route
    return best


def _find_venue(registry: VenueRegistry, venue_id: int) -> Venue:
    for venue in registry.venues:
        if venue.venue_id == venue_id:
            return venue
    raise InvalidVenueId(f"Unknown venue id {venue_id}")
