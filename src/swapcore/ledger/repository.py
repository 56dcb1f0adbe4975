"""Repository for ledger operations.

This is the LedgerAccess boundary: value leaves an account only as a
``Coin`` returned by ``withdraw`` and enters one only through ``deposit``.
All methods flush but never commit; the caller's unit of work decides.
"""

import json
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from swapcore.errors import InsufficientBalance
from swapcore.fixed_point import check_u64, checked_add
from swapcore.ledger.custody import Coin
from swapcore.ledger.models import (
    AtomicSwap,
    Balance,
    EscrowPool,
    SettlementEvent,
    SwapRegistry,
    Venue,
    VenueRegistry,
)


class LedgerRepository:
    """Repository for all ledger-related database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # Balance operations
    async def get_balance(self, owner: str, asset: str) -> Optional[Balance]:
        """Get account balance for a specific asset."""
        stmt = select(Balance).where(Balance.owner == owner, Balance.asset == asset.upper())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def balance_of(self, owner: str, asset: str) -> int:
        """Current balance as a plain integer (0 for unknown accounts)."""
        balance = await self.get_balance(owner, asset)
        return balance.amount if balance else 0

    async def get_all_balances(self, owner: str) -> list[Balance]:
        """Get all balances for an account."""
        stmt = select(Balance).where(Balance.owner == owner).order_by(Balance.asset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_or_create_balance(self, owner: str, asset: str) -> Balance:
        """Get or create a balance record for owner/asset."""
        balance = await self.get_balance(owner, asset)
        if balance is None:
            balance = Balance(owner=owner, asset=asset.upper(), amount=0)
            self.session.add(balance)
            await self.session.flush()
        return balance

    async def credit_balance(self, owner: str, asset: str, amount: int) -> Balance:
        """Add externally sourced value to an account (funding, not a transfer)."""
        check_u64(amount, "credit amount")
        balance = await self.get_or_create_balance(owner, asset)
        balance.amount = checked_add(balance.amount, amount)
        await self.session.flush()
        return balance

    async def withdraw(self, owner: str, asset: str, amount: int) -> Coin:
        """Take ``amount`` out of an account. Raises InsufficientBalance."""
        check_u64(amount, "withdraw amount")
        balance = await self.get_or_create_balance(owner, asset)
        if balance.amount < amount:
            raise InsufficientBalance(owner, asset.upper(), balance.amount, amount)
        balance.amount -= amount
        await self.session.flush()
        return Coin(asset.upper(), amount)

    async def deposit(self, owner: str, coin: Coin) -> Balance:
        """Put a coin into an account; the coin is consumed."""
        balance = await self.get_or_create_balance(owner, coin.asset)
        balance.amount = checked_add(balance.amount, coin.consume())
        await self.session.flush()
        return balance

    async def list_balances(self) -> list[Balance]:
        """Every balance row, for audits."""
        result = await self.session.execute(select(Balance).order_by(Balance.owner, Balance.asset))
        return list(result.scalars().all())

    # Atomic swap operations
    async def get_swap_registry(self, initiator: str) -> Optional[SwapRegistry]:
        stmt = select(SwapRegistry).where(SwapRegistry.initiator == initiator)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create_swap_registry(self, initiator: str) -> SwapRegistry:
        """Get or create the swap id counter for an initiator."""
        registry = await self.get_swap_registry(initiator)
        if registry is None:
            registry = SwapRegistry(initiator=initiator, next_swap_id=0)
            self.session.add(registry)
            await self.session.flush()
        return registry

    async def get_swap(self, initiator: str, swap_id: int) -> Optional[AtomicSwap]:
        stmt = select(AtomicSwap).where(
            AtomicSwap.initiator == initiator, AtomicSwap.swap_id == swap_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_swap(self, swap: AtomicSwap) -> AtomicSwap:
        self.session.add(swap)
        await self.session.flush()
        return swap

    async def list_swaps(self, initiator: Optional[str] = None) -> list[AtomicSwap]:
        """Swaps of one initiator (or all), oldest first."""
        stmt = select(AtomicSwap).order_by(AtomicSwap.initiator, AtomicSwap.swap_id)
        if initiator is not None:
            stmt = stmt.where(AtomicSwap.initiator == initiator)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # Pool operations
    async def get_pool(self, admin: str, asset_x: str, asset_y: str) -> Optional[EscrowPool]:
        stmt = select(EscrowPool).where(
            EscrowPool.admin == admin,
            EscrowPool.asset_x == asset_x.upper(),
            EscrowPool.asset_y == asset_y.upper(),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_pool(self, pool: EscrowPool) -> EscrowPool:
        self.session.add(pool)
        await self.session.flush()
        return pool

    async def list_pools(self) -> list[EscrowPool]:
        stmt = select(EscrowPool).order_by(EscrowPool.admin, EscrowPool.asset_x, EscrowPool.asset_y)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # Venue registry operations
    async def get_venue_registry(self, admin: str) -> Optional[VenueRegistry]:
        stmt = select(VenueRegistry).where(VenueRegistry.admin == admin)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_venue_registry(
        self, admin: str, venue_names: list[str], created_at: int
    ) -> VenueRegistry:
        """Create a registry with venues 1..N, all enabled and with zero stats."""
        registry = VenueRegistry(
            admin=admin,
            total_volume=0,
            total_swaps=0,
            fees_collected=0,
            created_at=created_at,
        )
        self.session.add(registry)
        await self.session.flush()

        for venue_id, name in enumerate(venue_names, start=1):
            self.session.add(
                Venue(
                    registry_id=registry.id,
                    venue_id=venue_id,
                    name=name,
                    enabled=True,
                    total_volume=0,
                    swap_count=0,
                )
            )
        await self.session.flush()
        await self.session.refresh(registry, attribute_names=["venues"])
        return registry

    async def list_registries(self) -> list[VenueRegistry]:
        result = await self.session.execute(select(VenueRegistry).order_by(VenueRegistry.admin))
        return list(result.scalars().all())

    # Event log
    async def record_event(
        self, registry: str, event_type: str, payload: dict, timestamp: int
    ) -> SettlementEvent:
        """Append a structured record to the event log."""
        event = SettlementEvent(
            registry_name=registry,
            event_type=event_type,
            payload=json.dumps(payload, sort_keys=True),
            timestamp=timestamp,
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def list_events(
        self,
        registry: Optional[str] = None,
        event_type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[SettlementEvent]:
        """Read back the event log in append order."""
        stmt = select(SettlementEvent).order_by(SettlementEvent.id)
        if registry is not None:
            stmt = stmt.where(SettlementEvent.registry_name == registry)
        if event_type is not None:
            stmt = stmt.where(SettlementEvent.event_type == event_type)
        stmt = stmt.limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
