"""Tests for constant-product escrow pools."""

import pytest
import pytest_asyncio

from swapcore.assets import TokenPair
from swapcore.errors import (
    AlreadyInitialized,
    InsufficientBalance,
    InsufficientLiquidity,
    InvalidTokenPair,
    NotAuthorized,
    NotFound,
    SlippageExceeded,
    ZeroAmount,
)
from swapcore.events import EventType, pool_registry_name
from swapcore.ledger.repository import LedgerRepository
from swapcore.pool import EscrowPoolEngine


@pytest.fixture
def pools(session_factory, clock, settings) -> EscrowPoolEngine:
    return EscrowPoolEngine(session_factory, clock=clock, settings=settings)


@pytest_asyncio.fixture
async def pool(pools, fund, pair):
    """Pool owned by ``admin`` with reserves (1000, 1000) and a funded trader."""
    await fund("admin", "APT", 1_000)
    await fund("admin", "USDC", 1_000)
    await fund("trader", "APT", 10_000)
    await fund("trader", "USDC", 10_000)
    return await pools.create_pool("admin", 1_000, 1_000, pair=pair)


class TestCreatePool:
    """Tests for pool creation."""

    @pytest.mark.asyncio
    async def test_create_seeds_reserves(self, pool, balance_of):
        assert pool.reserve_x == 1_000
        assert pool.reserve_y == 1_000
        assert pool.fees_collected_x == 0
        assert pool.swap_count == 0
        assert pool.fee_bps == 30
        assert await balance_of("admin", "APT") == 0
        assert await balance_of("admin", "USDC") == 0

    @pytest.mark.asyncio
    async def test_one_pool_per_pair(self, pool, pools, fund, pair):
        await fund("admin", "APT", 10)
        await fund("admin", "USDC", 10)

        with pytest.raises(AlreadyInitialized):
            await pools.create_pool("admin", 10, 10, pair=pair)

    @pytest.mark.asyncio
    async def test_reverse_pair_is_a_different_pool(self, pool, pools, fund, pair):
        await fund("admin", "APT", 10)
        await fund("admin", "USDC", 10)

        info = await pools.create_pool("admin", 10, 10, pair=pair.reversed())

        assert (info.asset_x, info.asset_y) == ("USDC", "APT")

    @pytest.mark.asyncio
    async def test_create_requires_both_amounts(self, pools, fund, pair):
        await fund("admin", "APT", 10)

        with pytest.raises(ZeroAmount):
            await pools.create_pool("admin", 10, 0, pair=pair)

    @pytest.mark.asyncio
    async def test_create_requires_balance(self, pools, fund, pair, balance_of):
        await fund("admin", "APT", 10)

        with pytest.raises(InsufficientBalance):
            await pools.create_pool("admin", 10, 10, pair=pair)

        assert await balance_of("admin", "APT") == 10
        with pytest.raises(NotFound):
            await pools.get_pool_info("admin", pair=pair)

    @pytest.mark.asyncio
    async def test_create_requires_distinct_assets(self, pools):
        with pytest.raises(InvalidTokenPair):
            await pools.create_pool("admin", 10, 10, pair=TokenPair("APT", "APT"))


class TestPoolSwaps:
    """Tests for constant-product swaps."""

    @pytest.mark.asyncio
    async def test_example_swap(self, pool, pools, pair, balance_of):
        """Reserves (1000, 1000), 100 X in at 30 bps."""
        amount_out = await pools.swap_x_to_y("trader", 100, 0, "admin", pair=pair)

        assert amount_out == 90
        info = await pools.get_pool_info("admin", pair=pair)
        assert (info.reserve_x, info.reserve_y) == (1_100, 910)
        assert (info.tradable_x, info.tradable_y) == (1_099, 910)
        assert info.fees_collected_x == 1
        assert info.fees_collected_y == 0
        assert info.swap_count == 1
        assert await balance_of("trader", "APT") == 9_900
        assert await balance_of("trader", "USDC") == 10_090

    @pytest.mark.asyncio
    async def test_swap_y_to_x(self, pool, pools, pair, balance_of):
        amount_out = await pools.swap_y_to_x("trader", 100, 0, "admin", pair=pair)

        assert amount_out == 90
        info = await pools.get_pool_info("admin", pair=pair)
        assert (info.reserve_x, info.reserve_y) == (910, 1_100)
        assert info.fees_collected_y == 1
        assert await balance_of("trader", "APT") == 10_090

    @pytest.mark.asyncio
    async def test_product_never_decreases(self, pool, pools, pair):
        info = await pools.get_pool_info("admin", pair=pair)
        product = info.reserve_x * info.reserve_y

        for amount, x_to_y in [(100, True), (250, False), (7, True), (999, True), (3, False)]:
            if x_to_y:
                await pools.swap_x_to_y("trader", amount, 0, "admin", pair=pair)
            else:
                await pools.swap_y_to_x("trader", amount, 0, "admin", pair=pair)
            info = await pools.get_pool_info("admin", pair=pair)
            new_product = info.reserve_x * info.reserve_y
            assert new_product > product
            assert info.fees_collected_x <= info.reserve_x
            assert info.fees_collected_y <= info.reserve_y
            product = new_product

    @pytest.mark.asyncio
    async def test_quote_matches_swap(self, pool, pools, pair):
        await pools.swap_x_to_y("trader", 333, 0, "admin", pair=pair)

        quote = await pools.get_quote_x_to_y(500, "admin", pair=pair)
        amount_out = await pools.swap_x_to_y("trader", 500, 0, "admin", pair=pair)

        assert quote.amount_out == amount_out

        quote = await pools.get_quote_y_to_x(200, "admin", pair=pair)
        amount_out = await pools.swap_y_to_x("trader", 200, 0, "admin", pair=pair)

        assert quote.amount_out == amount_out

    @pytest.mark.asyncio
    async def test_quote_does_not_change_state(self, pool, pools, pair):
        quote = await pools.get_quote_x_to_y(100, "admin", pair=pair)

        assert quote.amount_out == 90
        assert quote.fee == 1
        assert quote.price_impact_bps == 1_000
        info = await pools.get_pool_info("admin", pair=pair)
        assert (info.reserve_x, info.reserve_y, info.swap_count) == (1_000, 1_000, 0)

    @pytest.mark.asyncio
    async def test_slippage_exceeded(self, pool, pools, pair, balance_of):
        with pytest.raises(SlippageExceeded) as exc_info:
            await pools.swap_x_to_y("trader", 100, 91, "admin", pair=pair)

        assert exc_info.value.amount_out == 90
        assert exc_info.value.min_amount_out == 91
        info = await pools.get_pool_info("admin", pair=pair)
        assert (info.reserve_x, info.reserve_y) == (1_000, 1_000)
        assert await balance_of("trader", "APT") == 10_000

    @pytest.mark.asyncio
    async def test_dust_input_rejected(self, pool, pools, pair):
        with pytest.raises(ZeroAmount):
            await pools.swap_x_to_y("trader", 1, 0, "admin", pair=pair)

    @pytest.mark.asyncio
    async def test_zero_input_rejected(self, pool, pools, pair):
        with pytest.raises(ZeroAmount):
            await pools.swap_x_to_y("trader", 0, 0, "admin", pair=pair)

    @pytest.mark.asyncio
    async def test_trader_without_funds(self, pool, pools, pair):
        with pytest.raises(InsufficientBalance):
            await pools.swap_x_to_y("nobody", 100, 0, "admin", pair=pair)

        info = await pools.get_pool_info("admin", pair=pair)
        assert info.swap_count == 0

    @pytest.mark.asyncio
    async def test_unknown_pool(self, pools, pair):
        with pytest.raises(NotFound):
            await pools.swap_x_to_y("trader", 100, 0, "admin", pair=pair)

    @pytest.mark.asyncio
    async def test_calculate_price(self, pool, pools, pair):
        assert await pools.calculate_price("admin", pair=pair) == 100_000_000

        await pools.swap_x_to_y("trader", 100, 0, "admin", pair=pair)

        # 910 * 10^8 / 1100
        assert await pools.calculate_price("admin", pair=pair) == 82_727_272

    @pytest.mark.asyncio
    async def test_swap_events(self, pool, pools, pair, session_factory):
        await pools.swap_x_to_y("trader", 100, 0, "admin", pair=pair)

        async with session_factory() as session:
            events = await LedgerRepository(session).list_events(
                pool_registry_name("admin", "APT", "USDC")
            )

        assert [e.event_type for e in events] == [
            EventType.POOL_CREATED.value,
            EventType.POOL_SWAP.value,
        ]


class TestLiquidityAndFees:
    """Tests for admin-only pool operations."""

    @pytest.mark.asyncio
    async def test_add_liquidity(self, pool, pools, fund, pair, balance_of):
        await fund("admin", "APT", 500)

        liquidity = await pools.add_liquidity("admin", "admin", 500, 0, pair=pair)

        assert (liquidity.reserve_x, liquidity.reserve_y) == (1_500, 1_000)
        assert await balance_of("admin", "APT") == 0

    @pytest.mark.asyncio
    async def test_remove_liquidity(self, pool, pools, pair, balance_of):
        liquidity = await pools.remove_liquidity("admin", "admin", 400, 100, pair=pair)

        assert (liquidity.reserve_x, liquidity.reserve_y) == (600, 900)
        assert await balance_of("admin", "APT") == 400
        assert await balance_of("admin", "USDC") == 100

    @pytest.mark.asyncio
    async def test_remove_cannot_take_uncollected_fees(self, pool, pools, pair):
        await pools.swap_x_to_y("trader", 100, 0, "admin", pair=pair)

        with pytest.raises(InsufficientLiquidity):
            await pools.remove_liquidity("admin", "admin", 1_100, 0, pair=pair)

        liquidity = await pools.remove_liquidity("admin", "admin", 1_099, 0, pair=pair)
        assert liquidity.reserve_x == 1

    @pytest.mark.asyncio
    async def test_liquidity_requires_an_amount(self, pool, pools, pair):
        with pytest.raises(ZeroAmount):
            await pools.add_liquidity("admin", "admin", 0, 0, pair=pair)
        with pytest.raises(ZeroAmount):
            await pools.remove_liquidity("admin", "admin", 0, 0, pair=pair)

    @pytest.mark.asyncio
    async def test_only_admin_manages_liquidity(self, pool, pools, pair, balance_of):
        with pytest.raises(NotAuthorized):
            await pools.add_liquidity("trader", "admin", 100, 100, pair=pair)
        with pytest.raises(NotAuthorized):
            await pools.remove_liquidity("trader", "admin", 100, 100, pair=pair)
        with pytest.raises(NotAuthorized):
            await pools.collect_fees("trader", "admin", pair=pair)

        assert await balance_of("trader", "APT") == 10_000
        liquidity = await pools.get_pool_liquidity("admin", pair=pair)
        assert (liquidity.reserve_x, liquidity.reserve_y) == (1_000, 1_000)

    @pytest.mark.asyncio
    async def test_collect_fees(self, pool, pools, pair, balance_of):
        await pools.swap_x_to_y("trader", 1_000, 0, "admin", pair=pair)
        await pools.swap_y_to_x("trader", 1_000, 0, "admin", pair=pair)
        info = await pools.get_pool_info("admin", pair=pair)

        fees_x, fees_y = await pools.collect_fees("admin", "admin", pair=pair)

        assert (fees_x, fees_y) == (3, 3)
        assert await balance_of("admin", "APT") == 3
        assert await balance_of("admin", "USDC") == 3
        after = await pools.get_pool_info("admin", pair=pair)
        assert after.reserve_x == info.reserve_x - 3
        assert after.reserve_y == info.reserve_y - 3
        assert (after.fees_collected_x, after.fees_collected_y) == (0, 0)
