"""Tests for the routing module."""

from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from swapcore.config import Settings
from swapcore.errors import (
    AlreadyInitialized,
    InsufficientBalance,
    InsufficientLiquidity,
    InvalidVenueId,
    NoRoutesFound,
    NotAuthorized,
    NotInitialized,
    QuoteSourceError,
    SlippageExceeded,
    VenueUnavailable,
    ZeroAmount,
)
from swapcore.events import EventType, aggregator_registry_name
from swapcore.ledger.repository import LedgerRepository
from swapcore.routing import (
    NO_LIQUIDITY,
    HttpQuoteSource,
    QuoteSource,
    RateQuoteSource,
    RouteAggregator,
    StaticQuoteSource,
    VenueQuote,
    create_aggregator,
    create_quote_source,
    venue_account,
)
from swapcore.utils.locks import account_key, get_record_lock

VENUE_OUTPUTS = {1: 975, 2: 980, 3: 985, 4: 988, 5: 970}


def static_quotes(outputs: dict[int, int]) -> StaticQuoteSource:
    return StaticQuoteSource({venue_id: VenueQuote(out, 10) for venue_id, out in outputs.items()})


@pytest.fixture
def source() -> StaticQuoteSource:
    return static_quotes(VENUE_OUTPUTS)


@pytest_asyncio.fixture
async def aggregator(source, session_factory, clock, settings) -> RouteAggregator:
    aggregator = RouteAggregator(
        source, session_factory=session_factory, clock=clock, settings=settings
    )
    await aggregator.initialize("admin")
    return aggregator


@pytest_asyncio.fixture
async def trader(fund):
    """Trader holding APT and every venue holding USDC inventory."""
    await fund("trader", "APT", 100_000)
    for venue_id in VENUE_OUTPUTS:
        await fund(venue_account("admin", venue_id), "USDC", 10_000)
    return "trader"


class TestInitialize:
    """Tests for registry creation."""

    @pytest.mark.asyncio
    async def test_venues_registered_in_order(self, aggregator):
        venues = await aggregator.get_supported_venues()

        assert [(v.id, v.name) for v in venues] == [
            (1, "Liquidswap"),
            (2, "Panora"),
            (3, "Thala"),
            (4, "Cetus"),
            (5, "Cellana"),
        ]
        assert all(v.enabled for v in venues)
        assert all(v.total_volume == 0 and v.swap_count == 0 for v in venues)

    @pytest.mark.asyncio
    async def test_initialize_twice(self, aggregator):
        with pytest.raises(AlreadyInitialized):
            await aggregator.initialize("admin")

    @pytest.mark.asyncio
    async def test_initialize_requires_admin(self, source, session_factory, clock, settings):
        aggregator = RouteAggregator(
            source, session_factory=session_factory, clock=clock, settings=settings
        )

        with pytest.raises(NotAuthorized):
            await aggregator.initialize("mallory")
        with pytest.raises(NotInitialized):
            await aggregator.get_supported_venues()

    @pytest.mark.asyncio
    async def test_queries_require_registry(self, source, session_factory, clock, settings, pair):
        aggregator = RouteAggregator(
            source, session_factory=session_factory, clock=clock, settings=settings
        )

        with pytest.raises(NotInitialized):
            await aggregator.find_best_route(1, pair=pair)
        with pytest.raises(NotInitialized):
            await aggregator.get_aggregator_stats()


class TestRouteQueries:
    """Tests for best-route selection and comparisons."""

    @pytest.mark.asyncio
    async def test_find_best_route(self, aggregator, pair):
        best = await aggregator.find_best_route(1, pair=pair)

        assert best.venue_id == 4
        assert best.amount_out == 988
        assert best.price_impact_bps == 10

    @pytest.mark.asyncio
    async def test_disabled_venue_is_skipped(self, aggregator, pair):
        await aggregator.toggle_venue("admin", 4, False)

        best = await aggregator.find_best_route(1, pair=pair)

        assert best.venue_id == 3
        assert best.amount_out == 985

    @pytest.mark.asyncio
    async def test_lowest_id_wins_ties(self, aggregator, source, pair):
        source.set_quote(2, VenueQuote(990, 0))
        source.set_quote(3, VenueQuote(990, 0))
        source.set_quote(5, VenueQuote(990, 0))

        best = await aggregator.find_best_route(1, pair=pair)

        assert best.venue_id == 2

    @pytest.mark.asyncio
    async def test_no_routes(self, aggregator, source, pair):
        for venue_id in VENUE_OUTPUTS:
            source.set_quote(venue_id, NO_LIQUIDITY)

        with pytest.raises(NoRoutesFound):
            await aggregator.find_best_route(1, pair=pair)
        with pytest.raises(NoRoutesFound):
            await aggregator.compare_prices(1, pair=pair)
        assert await aggregator.get_all_routes(1, pair=pair) == []

    @pytest.mark.asyncio
    async def test_get_all_routes_omits_zero_output(self, aggregator, source, pair):
        source.set_quote(5, NO_LIQUIDITY)

        routes = await aggregator.get_all_routes(1_000_000, pair=pair)

        assert [r.venue_id for r in routes] == [1, 2, 3, 4]
        assert routes[0].venue_name == "Liquidswap"
        assert all(r.amount_in == 1_000_000 for r in routes)
        assert all(r.estimated_fee == 500 for r in routes)

    @pytest.mark.asyncio
    async def test_compare_prices(self, aggregator, pair):
        comparison = await aggregator.compare_prices(1, pair=pair)

        assert comparison.best_venue_id == 4
        assert comparison.best_output == 988
        assert comparison.worst_output == 970
        assert comparison.price_diff_bps == 185

    @pytest.mark.asyncio
    async def test_failed_quote_source_is_skipped(self, session_factory, clock, settings, pair):
        async def quote(venue_id, amount_in, pair=None):
            if venue_id == 4:
                raise QuoteSourceError("venue 4 timed out")
            return VenueQuote(VENUE_OUTPUTS[venue_id], 0)

        source = AsyncMock(spec=QuoteSource)
        source.get_quote.side_effect = quote
        aggregator = RouteAggregator(
            source, session_factory=session_factory, clock=clock, settings=settings
        )
        await aggregator.initialize("admin")

        best = await aggregator.find_best_route(1, pair=pair)

        assert best.venue_id == 3
        assert source.get_quote.await_count == 5

    @pytest.mark.asyncio
    async def test_zero_amount(self, aggregator, pair):
        with pytest.raises(ZeroAmount):
            await aggregator.find_best_route(0, pair=pair)


class TestRoutedSwaps:
    """Tests for swap_best_route and swap_specific_venue."""

    @pytest.mark.asyncio
    async def test_swap_best_route(self, aggregator, trader, pair, clock, balance_of):
        result = await aggregator.swap_best_route("trader", 10_000, 900, pair=pair)

        assert result.venue_id == 4
        assert result.fee == 5
        assert result.amount_routed == 9_995
        assert result.amount_out == 988
        assert result.timestamp == clock.now
        assert await balance_of("trader", "APT") == 90_000
        assert await balance_of("trader", "USDC") == 988
        assert await balance_of("admin", "APT") == 5
        assert await balance_of(venue_account("admin", 4), "APT") == 9_995
        assert await balance_of(venue_account("admin", 4), "USDC") == 10_000 - 988

    @pytest.mark.asyncio
    async def test_stats_updated(self, aggregator, trader, pair):
        await aggregator.swap_best_route("trader", 10_000, 0, pair=pair)
        await aggregator.swap_specific_venue("trader", 2, 20_000, 0, pair=pair)

        stats = await aggregator.get_aggregator_stats()
        assert stats.total_volume == 30_000
        assert stats.total_swaps == 2
        assert stats.fees_collected == 15

        venue_4 = await aggregator.get_venue_stats(4)
        venue_2 = await aggregator.get_venue_stats(2)
        venue_1 = await aggregator.get_venue_stats(1)
        assert (venue_4.total_volume, venue_4.swap_count) == (10_000, 1)
        assert (venue_2.total_volume, venue_2.swap_count) == (20_000, 1)
        assert (venue_1.total_volume, venue_1.swap_count) == (0, 0)

    @pytest.mark.asyncio
    async def test_fee_is_floored(self, aggregator, trader, pair, balance_of):
        small = await aggregator.swap_best_route("trader", 1_999, 0, pair=pair)
        exact = await aggregator.swap_best_route("trader", 2_000, 0, pair=pair)

        assert small.fee == 0
        assert exact.fee == 1
        assert await balance_of("admin", "APT") == 1

    @pytest.mark.asyncio
    async def test_slippage_rejected_before_any_transfer(
        self, aggregator, trader, pair, balance_of
    ):
        with pytest.raises(SlippageExceeded):
            await aggregator.swap_best_route("trader", 10_000, 989, pair=pair)

        assert await balance_of("trader", "APT") == 100_000
        assert await balance_of("admin", "APT") == 0
        assert (await aggregator.get_aggregator_stats()).total_swaps == 0

    @pytest.mark.asyncio
    async def test_executor_failure_rolls_back(self, aggregator, fund, pair, balance_of):
        """A venue without inventory undoes the fee and the withdrawal."""
        await fund("trader", "APT", 10_000)

        with pytest.raises(VenueUnavailable):
            await aggregator.swap_best_route("trader", 10_000, 0, pair=pair)

        assert await balance_of("trader", "APT") == 10_000
        assert await balance_of("admin", "APT") == 0
        assert await balance_of(venue_account("admin", 4), "APT") == 0
        stats = await aggregator.get_aggregator_stats()
        assert (stats.fees_collected, stats.total_swaps, stats.total_volume) == (0, 0, 0)

    @pytest.mark.asyncio
    async def test_insufficient_user_balance(self, aggregator, trader, pair):
        with pytest.raises(InsufficientBalance):
            await aggregator.swap_best_route("trader", 100_001, 0, pair=pair)

    @pytest.mark.asyncio
    async def test_swap_specific_venue(self, aggregator, trader, pair, balance_of):
        result = await aggregator.swap_specific_venue("trader", 1, 10_000, 0, pair=pair)

        assert result.venue_id == 1
        assert result.amount_out == 975
        assert await balance_of("trader", "USDC") == 975

    @pytest.mark.asyncio
    async def test_specific_venue_validation(self, aggregator, trader, source, pair):
        with pytest.raises(InvalidVenueId):
            await aggregator.swap_specific_venue("trader", 9, 10_000, 0, pair=pair)

        await aggregator.toggle_venue("admin", 1, False)
        with pytest.raises(VenueUnavailable):
            await aggregator.swap_specific_venue("trader", 1, 10_000, 0, pair=pair)

        source.set_quote(2, NO_LIQUIDITY)
        with pytest.raises(VenueUnavailable):
            await aggregator.swap_specific_venue("trader", 2, 10_000, 0, pair=pair)

        with pytest.raises(SlippageExceeded):
            await aggregator.swap_specific_venue("trader", 3, 10_000, 986, pair=pair)

    @pytest.mark.asyncio
    async def test_actual_output_is_checked(self, session_factory, clock, settings, fund, pair):
        """Venues fill the input net of the fee, which may fall below the minimum."""
        aggregator = create_aggregator(
            quote_source=RateQuoteSource(settings.dry_run_rates),
            session_factory=session_factory,
            clock=clock,
            settings=settings,
        )
        await aggregator.initialize("admin")
        await fund("trader", "APT", 1_000_000)
        await fund(venue_account("admin", 4), "USDC", 1_000_000)

        best = await aggregator.find_best_route(1_000_000, pair=pair)
        assert (best.venue_id, best.amount_out) == (4, 988_000)

        with pytest.raises(SlippageExceeded) as exc_info:
            await aggregator.swap_best_route("trader", 1_000_000, 988_000, pair=pair)
        assert exc_info.value.amount_out == 987_506

        result = await aggregator.swap_best_route("trader", 1_000_000, 987_506, pair=pair)
        assert result.amount_out == 987_506

    @pytest.mark.asyncio
    async def test_swap_events(self, aggregator, trader, pair, session_factory):
        await aggregator.swap_best_route("trader", 10_000, 0, pair=pair)

        async with session_factory() as session:
            events = await LedgerRepository(session).list_events(aggregator_registry_name("admin"))

        assert [e.event_type for e in events] == [
            EventType.AGGREGATOR_INITIALIZED.value,
            EventType.ROUTE_COMPARISON.value,
            EventType.AGGREGATED_SWAP.value,
        ]


    @pytest.mark.asyncio
    async def test_venue_inventory_locked_during_fill(self, aggregator, trader, pair):
        held = []
        fill = aggregator.executor.execute

        async def checked_fill(venue, coin_in, pair, ledger):
            lock = await get_record_lock(account_key(venue_account("admin", venue.id)))
            held.append((venue.id, lock.locked()))
            return await fill(venue, coin_in, pair, ledger)

        aggregator.executor.execute = checked_fill
        await aggregator.swap_best_route("trader", 10_000, 0, pair=pair)
        await aggregator.swap_specific_venue("trader", 2, 10_000, 0, pair=pair)

        assert held == [(4, True), (2, True)]
        assert aggregator.executor.accounts(3) == [venue_account("admin", 3)]

class TestAdminOperations:
    """Tests for venue toggling and fee bookkeeping."""

    @pytest.mark.asyncio
    async def test_toggle_venue(self, aggregator):
        info = await aggregator.toggle_venue("admin", 2, False)

        assert info.enabled is False
        assert (await aggregator.get_venue_stats(2)).enabled is False

        info = await aggregator.toggle_venue("admin", 2, True)
        assert info.enabled is True

    @pytest.mark.asyncio
    async def test_toggle_requires_admin(self, aggregator):
        with pytest.raises(NotAuthorized):
            await aggregator.toggle_venue("mallory", 2, False)

        assert (await aggregator.get_venue_stats(2)).enabled is True

    @pytest.mark.asyncio
    async def test_toggle_unknown_venue(self, aggregator):
        with pytest.raises(InvalidVenueId):
            await aggregator.toggle_venue("admin", 6, False)

    @pytest.mark.asyncio
    async def test_collect_fees_is_bookkeeping(self, aggregator, trader, pair, balance_of):
        await aggregator.swap_best_route("trader", 10_000, 0, pair=pair)

        remaining = await aggregator.collect_fees("admin", 3)

        assert remaining == 2
        assert (await aggregator.get_aggregator_stats()).fees_collected == 2
        assert await balance_of("admin", "APT") == 5

        with pytest.raises(InsufficientLiquidity):
            await aggregator.collect_fees("admin", 3)
        with pytest.raises(ZeroAmount):
            await aggregator.collect_fees("admin", 0)
        with pytest.raises(NotAuthorized):
            await aggregator.collect_fees("trader", 1)


class TestQuoteSources:
    """Tests for the quote source implementations."""

    @pytest.mark.asyncio
    async def test_rate_quote_source(self):
        source = RateQuoteSource({1: 9_850, 2: 0})

        assert (await source.get_quote(1, 1_000_000)).amount_out == 985_000
        assert await source.get_quote(2, 1_000_000) == NO_LIQUIDITY
        assert await source.get_quote(3, 1_000_000) == NO_LIQUIDITY

    @pytest.mark.asyncio
    async def test_http_quote_source(self, pair):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/quote"
            assert request.url.params["venue_id"] == "2"
            assert request.url.params["asset_in"] == "APT"
            assert request.url.params["asset_out"] == "USDC"
            amount_in = int(request.url.params["amount_in"])
            return httpx.Response(
                200, json={"amount_out": str(amount_in * 2), "price_impact_bps": 12}
            )

        source = HttpQuoteSource("http://quotes.test/", transport=httpx.MockTransport(handler))

        quote = await source.get_quote(2, 500, pair)

        assert quote == VenueQuote(1_000, 12)

    @pytest.mark.asyncio
    async def test_http_no_route(self):
        source = HttpQuoteSource(
            "http://quotes.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(404)),
        )

        assert await source.get_quote(1, 500) == NO_LIQUIDITY

    @pytest.mark.asyncio
    async def test_http_errors_are_wrapped(self):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        for transport in [
            httpx.MockTransport(lambda request: httpx.Response(500)),
            httpx.MockTransport(lambda request: httpx.Response(200, text="not json")),
            httpx.MockTransport(lambda request: httpx.Response(200, json={"amount_out": -1})),
            httpx.MockTransport(refuse),
        ]:
            source = HttpQuoteSource("http://quotes.test", transport=transport)
            with pytest.raises(QuoteSourceError):
                await source.get_quote(1, 500)

    def test_factory_uses_dry_run_rates(self):
        source = create_quote_source(Settings(dry_run=True, quote_api_url="http://quotes.test"))

        assert isinstance(source, RateQuoteSource)
        assert source.rates_bps[4] == 9_880

    def test_factory_uses_http_when_live(self):
        source = create_quote_source(Settings(dry_run=False, quote_api_url="http://quotes.test"))

        assert isinstance(source, HttpQuoteSource)
        assert source.base_url == "http://quotes.test"

    def test_factory_falls_back_without_url(self):
        source = create_quote_source(Settings(dry_run=False, quote_api_url=None))

        assert isinstance(source, RateQuoteSource)
