"""Route aggregator read models."""

from pydantic import BaseModel, ConfigDict, Field

from swapcore.ledger.models import Venue


class VenueInfo(BaseModel):
    """Copy of a venue descriptor and its statistics."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1, description="Stable venue id")
    name: str
    enabled: bool
    total_volume: int
    swap_count: int

    @classmethod
    def from_record(cls, venue: Venue) -> "VenueInfo":
        return cls(
            id=venue.venue_id,
            name=venue.name,
            enabled=venue.enabled,
            total_volume=venue.total_volume,
            swap_count=venue.swap_count,
        )


class VenueStats(BaseModel):
    """Per-venue statistics."""

    model_config = ConfigDict(frozen=True)

    total_volume: int
    swap_count: int
    enabled: bool


class AggregatorStats(BaseModel):
    """Registry-wide statistics."""

    model_config = ConfigDict(frozen=True)

    total_volume: int
    total_swaps: int
    fees_collected: int


class RouteRecord(BaseModel):
    """One venue's answer for a route comparison."""

    model_config = ConfigDict(frozen=True)

    venue_id: int
    venue_name: str
    amount_in: int
    amount_out: int
    price_impact_bps: int
    estimated_fee: int = Field(..., description="Aggregator fee charged on amount_in")


class BestRoute(BaseModel):
    """Venue with the greatest output."""

    model_config = ConfigDict(frozen=True)

    venue_id: int
    amount_out: int
    price_impact_bps: int


class PriceComparison(BaseModel):
    """Best against worst output across enabled venues."""

    model_config = ConfigDict(frozen=True)

    best_venue_id: int
    best_output: int
    worst_output: int
    price_diff_bps: int


class AggregatedSwapResult(BaseModel):
    """Outcome of a routed swap."""

    model_config = ConfigDict(frozen=True)

    user: str
    venue_id: int
    asset_in: str
    asset_out: str
    amount_in: int
    fee: int
    amount_routed: int = Field(..., description="Input handed to the venue after the fee")
    amount_out: int
    timestamp: int
