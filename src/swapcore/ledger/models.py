"""SQLAlchemy models for balances, custody records and the event log."""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from swapcore.ledger.custody import CustodySlot


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class TokenAmount(TypeDecorator):
    """Unsigned integer amount stored as a decimal string.

    SQLite integers are signed 64-bit, so u64 balances and u128 volume
    totals would not round-trip through a native integer column.
    """

    impl = String(40)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class SwapState(str, Enum):
    """Lifecycle state of an atomic swap."""

    CREATED = "created"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Balance(Base):
    """Account balance for a specific asset."""

    __tablename__ = "balances"
    __table_args__ = (Index("ix_balances_owner_asset", "owner", "asset", unique=True),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner: Mapped[str] = mapped_column(String(128), nullable=False)
    asset: Mapped[str] = mapped_column(String(64), nullable=False)
    amount: Mapped[int] = mapped_column(TokenAmount, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class SwapRegistry(Base):
    """Per-initiator swap id counter."""

    __tablename__ = "swap_registries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    initiator: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    next_swap_id: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)


class AtomicSwap(Base):
    """Bilateral time-locked swap, kept forever as an audit record."""

    __tablename__ = "atomic_swaps"
    __table_args__ = (
        Index("ix_atomic_swaps_initiator_swap_id", "initiator", "swap_id", unique=True),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    initiator: Mapped[str] = mapped_column(String(128), nullable=False)
    swap_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    participant: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    asset_x: Mapped[str] = mapped_column(String(64), nullable=False)
    asset_y: Mapped[str] = mapped_column(String(64), nullable=False)
    amount_x: Mapped[int] = mapped_column(TokenAmount, nullable=False)
    amount_y: Mapped[int] = mapped_column(TokenAmount, nullable=False)
    held_x: Mapped[int] = mapped_column(TokenAmount, default=0, nullable=False)
    held_y: Mapped[int] = mapped_column(TokenAmount, default=0, nullable=False)
    timeout: Mapped[int] = mapped_column(BigInteger, nullable=False)
    completed: Mapped[bool] = mapped_column(default=False, nullable=False)
    cancelled: Mapped[bool] = mapped_column(default=False, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    settled_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    custody_x = CustodySlot("held_x", "asset_x")
    custody_y = CustodySlot("held_y", "asset_y")

    @property
    def is_terminal(self) -> bool:
        return self.completed or self.cancelled

    @property
    def state(self) -> SwapState:
        if self.completed:
            return SwapState.COMPLETED
        if self.cancelled:
            return SwapState.CANCELLED
        return SwapState.CREATED


class EscrowPool(Base):
    """Constant-product liquidity pool for one token pair."""

    __tablename__ = "escrow_pools"
    __table_args__ = (
        Index("ix_escrow_pools_admin_pair", "admin", "asset_x", "asset_y", unique=True),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    admin: Mapped[str] = mapped_column(String(128), nullable=False)
    asset_x: Mapped[str] = mapped_column(String(64), nullable=False)
    asset_y: Mapped[str] = mapped_column(String(64), nullable=False)
    reserve_x: Mapped[int] = mapped_column(TokenAmount, default=0, nullable=False)
    reserve_y: Mapped[int] = mapped_column(TokenAmount, default=0, nullable=False)
    fees_collected_x: Mapped[int] = mapped_column(TokenAmount, default=0, nullable=False)
    fees_collected_y: Mapped[int] = mapped_column(TokenAmount, default=0, nullable=False)
    swap_count: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    custody_x = CustodySlot("reserve_x", "asset_x")
    custody_y = CustodySlot("reserve_y", "asset_y")


class VenueRegistry(Base):
    """Route aggregator state owned by its admin."""

    __tablename__ = "venue_registries"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    admin: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    total_volume: Mapped[int] = mapped_column(TokenAmount, default=0, nullable=False)
    total_swaps: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    fees_collected: Mapped[int] = mapped_column(TokenAmount, default=0, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Relationships
    venues: Mapped[list["Venue"]] = relationship(
        back_populates="venue_registry", lazy="selectin", order_by="Venue.venue_id"
    )


class Venue(Base):
    """External price source / execution target known to the aggregator."""

    __tablename__ = "venues"
    __table_args__ = (
        Index("ix_venues_registry_venue_id", "registry_id", "venue_id", unique=True),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    registry_id: Mapped[int] = mapped_column(ForeignKey("venue_registries.id"), nullable=False)
    venue_id: Mapped[int] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    enabled: Mapped[bool] = mapped_column(default=True, nullable=False)
    total_volume: Mapped[int] = mapped_column(TokenAmount, default=0, nullable=False)
    swap_count: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    # Relationships
    venue_registry: Mapped["VenueRegistry"] = relationship(back_populates="venues")


class SettlementEvent(Base):
    """Append-only structured record emitted by an operation."""

    __tablename__ = "settlement_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    registry_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)  # JSON
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
