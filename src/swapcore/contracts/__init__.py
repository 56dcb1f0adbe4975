"""Read models returned by the settlement engines.

Every query returns one of these pydantic copies, never a live ORM row.
"""

from swapcore.contracts.events import EventRecord
from swapcore.contracts.pools import PoolInfo, PoolLiquidity, PoolQuote
from swapcore.contracts.routes import (
    AggregatedSwapResult,
    AggregatorStats,
    BestRoute,
    PriceComparison,
    RouteRecord,
    VenueInfo,
    VenueStats,
)
from swapcore.contracts.swaps import SwapDetails

__all__ = [
    "AggregatedSwapResult",
    "AggregatorStats",
    "BestRoute",
    "EventRecord",
    "PoolInfo",
    "PoolLiquidity",
    "PoolQuote",
    "PriceComparison",
    "RouteRecord",
    "SwapDetails",
    "VenueInfo",
    "VenueStats",
]
