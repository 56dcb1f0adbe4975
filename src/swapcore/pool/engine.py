"""Constant-product escrow pools.

Each pool is owned by the admin that created it and holds custody of both
sides of one token pair. Anyone can swap against it; only the admin can add
or remove liquidity and collect the accumulated fees.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swapcore.assets import TokenPair
from swapcore.auth import require_admin
from swapcore.config import Settings, get_settings
from swapcore.contracts.pools import PoolInfo, PoolLiquidity, PoolQuote
from swapcore.errors import (
    AlreadyInitialized,
    InsufficientLiquidity,
    NotFound,
    SlippageExceeded,
    ZeroAmount,
)
from swapcore.events import EventSink, EventType, pool_registry_name
from swapcore.fixed_point import check_u64, checked_add, require_positive
from swapcore.ledger.database import get_session_factory
from swapcore.ledger.models import EscrowPool
from swapcore.ledger.repository import LedgerRepository
from swapcore.ledger.unit_of_work import read_scope, settlement_scope
from swapcore.pool import pricing
from swapcore.utils.clock import Clock, system_clock
from swapcore.utils.locks import account_key, pool_key

logger = logging.getLogger(__name__)


class EscrowPoolEngine:
    """Owns per-pair liquidity reserves and executes constant-product swaps."""

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
    def fee_bps(self) -> int:
        return self.settings.pool_fee_bps

    async def create_pool(
        self, admin: str, initial_x: int, initial_y: int, *, pair: TokenPair
    ) -> PoolInfo:
        """Create the admin's pool for ``pair`` seeded from the admin's balance."""
        pair = TokenPair.coerce(pair)
        require_positive(initial_x, "initial_x")
        require_positive(initial_y, "initial_y")

        async with self._scope(admin, pair, admin, operation="pool.create") as repo:
            if await repo.get_pool(admin, pair.x, pair.y) is not None:
                raise AlreadyInitialized(f"Pool {pair} already exists for {admin}")

            coin_x = await repo.withdraw(admin, pair.x, initial_x)
            coin_y = await repo.withdraw(admin, pair.y, initial_y)

            now = self._clock()
            pool = EscrowPool(
                admin=admin,
                asset_x=pair.x,
                asset_y=pair.y,
                reserve_x=0,
                reserve_y=0,
                fees_collected_x=0,
                fees_collected_y=0,
                swap_count=0,
                created_at=now,
            )
            pool.custody_x.absorb(coin_x)
            pool.custody_y.absorb(coin_y)
            await repo.add_pool(pool)

            await EventSink(repo).emit(
                pool_registry_name(admin, pair.x, pair.y),
                EventType.POOL_CREATED,
                now,
                admin=admin,
                reserve_x=pool.reserve_x,
                reserve_y=pool.reserve_y,
            )
            info = PoolInfo.from_record(pool, self.fee_bps)

        logger.info(f"Pool {pair} created by {admin} with reserves ({initial_x}, {initial_y})")
        return info

    async def swap_x_to_y(
        self,
        user: str,
        amount_in: int,
        min_amount_out: int,
        pool_owner: str,
        *,
        pair: TokenPair,
    ) -> int:
        """Sell ``amount_in`` of X for Y; returns the Y credited to ``user``."""
        return await self._swap(user, amount_in, min_amount_out, pool_owner, pair, x_to_y=True)

    async def swap_y_to_x(
        self,
        user: str,
        amount_in: int,
        min_amount_out: int,
        pool_owner: str,
        *,
        pair: TokenPair,
    ) -> int:
        """Sell ``amount_in`` of Y for X; returns the X credited to ``user``."""
        return await self._swap(user, amount_in, min_amount_out, pool_owner, pair, x_to_y=False)

    async def _swap(
        self,
        user: str,
        amount_in: int,
        min_amount_out: int,
        pool_owner: str,
        pair: TokenPair,
        x_to_y: bool,
    ) -> int:
        pair = TokenPair.coerce(pair)
        require_positive(amount_in, "amount_in")
        check_u64(min_amount_out, "min_amount_out")
        direction = "x_to_y" if x_to_y else "y_to_x"

        async with self._scope(pool_owner, pair, user, operation=f"pool.swap_{direction}") as repo:
            pool = await self._require_pool(repo, pool_owner, pair)
            side_in, side_out = (
                (pool.custody_x, pool.custody_y) if x_to_y else (pool.custody_y, pool.custody_x)
            )

            amount_out, fee = pricing.get_amount_out(
                amount_in, side_in.value, side_out.value, self.fee_bps
            )
            if amount_out == 0:
                raise ZeroAmount(f"Input {amount_in} is too small to buy any output")
            if amount_out < min_amount_out:
                raise SlippageExceeded(amount_out, min_amount_out)
            if amount_out >= side_out.value:
                raise InsufficientLiquidity(
                    f"Output {amount_out} would drain reserve of {side_out.value}"
                )
            checked_add(side_in.value, amount_in)

            coin_in = await repo.withdraw(user, side_in.asset, amount_in)
            side_in.absorb(coin_in)
            if x_to_y:
                pool.fees_collected_x = checked_add(pool.fees_collected_x, fee)
            else:
                pool.fees_collected_y = checked_add(pool.fees_collected_y, fee)
            await repo.deposit(user, side_out.release(amount_out))
            pool.swap_count += 1

            now = self._clock()
            await EventSink(repo).emit(
                pool_registry_name(pool_owner, pair.x, pair.y),
                EventType.POOL_SWAP,
                now,
                user=user,
                direction=direction,
                asset_in=side_in.asset,
                asset_out=side_out.asset,
                amount_in=amount_in,
                amount_out=amount_out,
                fee=fee,
                reserve_x=pool.reserve_x,
                reserve_y=pool.reserve_y,
            )

        logger.info(
            f"Pool {pool_owner}:{pair} swap {direction} by {user}: "
            f"{amount_in} in, {amount_out} out, fee {fee}"
        )
        return amount_out

    async def add_liquidity(
        self,
        caller: str,
        pool_owner: str,
        amount_x: int,
        amount_y: int,
        *,
        pair: TokenPair,
    ) -> PoolLiquidity:
        """Admin deposits ``amount_x``/``amount_y`` into the reserves."""
        pair = TokenPair.coerce(pair)
        self._require_some(amount_x, amount_y)

        async with self._scope(pool_owner, pair, caller, operation="pool.add_liquidity") as repo:
            pool = await self._require_pool(repo, pool_owner, pair)
            require_admin(caller, pool.admin, f"pool {pool_owner}:{pair}")
            checked_add(pool.reserve_x, amount_x)
            checked_add(pool.reserve_y, amount_y)

            coin_x = await repo.withdraw(caller, pair.x, amount_x)
            coin_y = await repo.withdraw(caller, pair.y, amount_y)
            pool.custody_x.absorb(coin_x)
            pool.custody_y.absorb(coin_y)

            await EventSink(repo).emit(
                pool_registry_name(pool_owner, pair.x, pair.y),
                EventType.LIQUIDITY_ADDED,
                self._clock(),
                provider=caller,
                amount_x=amount_x,
                amount_y=amount_y,
                reserve_x=pool.reserve_x,
                reserve_y=pool.reserve_y,
            )
            liquidity = PoolLiquidity(reserve_x=pool.reserve_x, reserve_y=pool.reserve_y)

        logger.info(f"Liquidity added to {pool_owner}:{pair}: +{amount_x} / +{amount_y}")
        return liquidity

    async def remove_liquidity(
        self,
        caller: str,
        pool_owner: str,
        amount_x: int,
        amount_y: int,
        *,
        pair: TokenPair,
    ) -> PoolLiquidity:
        """Admin withdraws ``amount_x``/``amount_y`` from the reserves.

        Uncollected fees stay in the pool; they leave only through
        ``collect_fees``.
        """
        pair = TokenPair.coerce(pair)
        self._require_some(amount_x, amount_y)

        async with self._scope(pool_owner, pair, caller, operation="pool.remove_liquidity") as repo:
            pool = await self._require_pool(repo, pool_owner, pair)
            require_admin(caller, pool.admin, f"pool {pool_owner}:{pair}")
            if amount_x > pool.reserve_x - pool.fees_collected_x:
                raise InsufficientLiquidity(
                    f"Cannot remove {amount_x} {pair.x}: "
                    f"{pool.reserve_x - pool.fees_collected_x} available"
                )
            if amount_y > pool.reserve_y - pool.fees_collected_y:
                raise InsufficientLiquidity(
                    f"Cannot remove {amount_y} {pair.y}: "
                    f"{pool.reserve_y - pool.fees_collected_y} available"
                )

            await repo.deposit(caller, pool.custody_x.release(amount_x))
            await repo.deposit(caller, pool.custody_y.release(amount_y))

            await EventSink(repo).emit(
                pool_registry_name(pool_owner, pair.x, pair.y),
                EventType.LIQUIDITY_REMOVED,
                self._clock(),
                provider=caller,
                amount_x=amount_x,
                amount_y=amount_y,
                reserve_x=pool.reserve_x,
                reserve_y=pool.reserve_y,
            )
            liquidity = PoolLiquidity(reserve_x=pool.reserve_x, reserve_y=pool.reserve_y)

        logger.info(f"Liquidity removed from {pool_owner}:{pair}: -{amount_x} / -{amount_y}")
        return liquidity

    async def collect_fees(
        self, caller: str, pool_owner: str, *, pair: TokenPair
    ) -> tuple[int, int]:
        """Move the accumulated fees to the admin and reset the counters."""
        pair = TokenPair.coerce(pair)

        async with self._scope(pool_owner, pair, caller, operation="pool.collect_fees") as repo:
            pool = await self._require_pool(repo, pool_owner, pair)
            require_admin(caller, pool.admin, f"pool {pool_owner}:{pair}")

            fees_x, fees_y = pool.fees_collected_x, pool.fees_collected_y
            await repo.deposit(caller, pool.custody_x.release(fees_x))
            await repo.deposit(caller, pool.custody_y.release(fees_y))
            pool.fees_collected_x = 0
            pool.fees_collected_y = 0

            await EventSink(repo).emit(
                pool_registry_name(pool_owner, pair.x, pair.y),
                EventType.POOL_FEES_COLLECTED,
                self._clock(),
                admin=caller,
                fees_x=fees_x,
                fees_y=fees_y,
            )

        logger.info(
            f"Fees collected from {pool_owner}:{pair}: {fees_x} {pair.x}, {fees_y} {pair.y}"
        )
        return fees_x, fees_y

    # Queries
    async def get_pool_info(self, pool_owner: str, *, pair: TokenPair) -> PoolInfo:
        return await self._read_pool(pool_owner, pair)

    async def get_pool_liquidity(self, pool_owner: str, *, pair: TokenPair) -> PoolLiquidity:
        info = await self._read_pool(pool_owner, pair)
        return PoolLiquidity(reserve_x=info.reserve_x, reserve_y=info.reserve_y)

    async def calculate_price(self, pool_owner: str, *, pair: TokenPair) -> int:
        """Price of X in Y as ``reserve_y * 10^8 / reserve_x``."""
        info = await self._read_pool(pool_owner, pair)
        return pricing.spot_price(info.reserve_x, info.reserve_y)

    async def get_quote_x_to_y(
        self, amount_in: int, pool_owner: str, *, pair: TokenPair
    ) -> PoolQuote:
        info = await self._read_pool(pool_owner, pair)
        return self._quote(amount_in, info.reserve_x, info.reserve_y)

    async def get_quote_y_to_x(
        self, amount_in: int, pool_owner: str, *, pair: TokenPair
    ) -> PoolQuote:
        info = await self._read_pool(pool_owner, pair)
        return self._quote(amount_in, info.reserve_y, info.reserve_x)

    def _quote(self, amount_in: int, reserve_in: int, reserve_out: int) -> PoolQuote:
        require_positive(amount_in, "amount_in")
        amount_out, fee = pricing.get_amount_out(amount_in, reserve_in, reserve_out, self.fee_bps)
        return PoolQuote(
            amount_in=amount_in,
            amount_out=amount_out,
            fee=fee,
            price_impact_bps=pricing.price_impact_bps(
                amount_in, amount_out, reserve_in, reserve_out
            ),
        )

    async def _read_pool(self, pool_owner: str, pair: TokenPair) -> PoolInfo:
        pair = TokenPair.coerce(pair)
        async with read_scope(self._session_factory) as repo:
            pool = await self._require_pool(repo, pool_owner, pair)
            return PoolInfo.from_record(pool, self.fee_bps)

    def _scope(self, pool_owner: str, pair: TokenPair, account: str, operation: str):
        return settlement_scope(
            self._session_factory,
            pool_key(pool_owner, pair.x, pair.y),
            account_key(account),
            operation=operation,
            lock_timeout=self.settings.lock_timeout_seconds,
        )

    @staticmethod
    async def _require_pool(repo: LedgerRepository, pool_owner: str, pair: TokenPair) -> EscrowPool:
        pool = await repo.get_pool(pool_owner, pair.x, pair.y)
        if pool is None:
            raise NotFound(f"Pool {pair} not found for {pool_owner}")
        return pool

    @staticmethod
    def _require_some(amount_x: int, amount_y: int) -> None:
        check_u64(amount_x, "amount_x")
        check_u64(amount_y, "amount_y")
        if amount_x == 0 and amount_y == 0:
            raise ZeroAmount("At least one of amount_x and amount_y must be greater than zero")
