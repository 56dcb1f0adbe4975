"""Escrow pool read models."""

from pydantic import BaseModel, ConfigDict, Field

from swapcore.ledger.models import EscrowPool


class PoolInfo(BaseModel):
    """Snapshot of an escrow pool.

    ``reserve_x``/``reserve_y`` include uncollected fees, so a 100 X swap into
    (1000, 1000) at 30 bps reports reserves (1100, 910). ``tradable_x``/
    ``tradable_y`` give what stays after ``collect_fees``: (1099, 910).
    """

    model_config = ConfigDict(frozen=True)

    admin: str
    asset_x: str
    asset_y: str
    reserve_x: int = Field(..., description="X held by the pool, uncollected fees included")
    reserve_y: int = Field(..., description="Y held by the pool, uncollected fees included")
    fees_collected_x: int = Field(..., description="Uncollected fees inside reserve_x")
    fees_collected_y: int = Field(..., description="Uncollected fees inside reserve_y")
    swap_count: int
    fee_bps: int

    @property
    def tradable_x(self) -> int:
        """Reserve X net of uncollected fees."""
        return self.reserve_x - self.fees_collected_x

    @property
    def tradable_y(self) -> int:
        """Reserve Y net of uncollected fees."""
        return self.reserve_y - self.fees_collected_y

    @classmethod
    def from_record(cls, pool: EscrowPool, fee_bps: int) -> "PoolInfo":
        return cls(
            admin=pool.admin,
            asset_x=pool.asset_x,
            asset_y=pool.asset_y,
            reserve_x=pool.reserve_x,
            reserve_y=pool.reserve_y,
            fees_collected_x=pool.fees_collected_x,
            fees_collected_y=pool.fees_collected_y,
            swap_count=pool.swap_count,
            fee_bps=fee_bps,
        )


class PoolLiquidity(BaseModel):
    """Current reserves of a pool."""

    model_config = ConfigDict(frozen=True)

    reserve_x: int
    reserve_y: int


class PoolQuote(BaseModel):
    """Read-only result of the pool pricing formula."""

    model_config = ConfigDict(frozen=True)

    amount_in: int
    amount_out: int
    fee: int = Field(..., description="Part of amount_in kept as the pool fee")
    price_impact_bps: int = Field(..., description="Shortfall against the spot price")
