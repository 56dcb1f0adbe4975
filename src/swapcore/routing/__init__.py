"""Routing module for venue quote comparison and routed swaps.

Quote sources:
- StaticQuoteSource: fixed per-venue answers
- RateQuoteSource: simulated per-venue rates (dry-run mode)
- HttpQuoteSource: remote quote service over HTTP
"""

from swapcore.routing.aggregator import RouteAggregator
from swapcore.routing.base import NO_LIQUIDITY, QuoteSource, VenueExecutor, VenueQuote
from swapcore.routing.dry_run import RateQuoteSource, StaticQuoteSource
from swapcore.routing.executor import LedgerVenueExecutor, venue_account
from swapcore.routing.factory import create_aggregator, create_quote_source
from swapcore.routing.http_quotes import HttpQuoteSource

__all__ = [
    # Base classes
    "QuoteSource",
    "VenueExecutor",
    "VenueQuote",
    "NO_LIQUIDITY",
    "RouteAggregator",
    # Quote sources
    "StaticQuoteSource",
    "RateQuoteSource",
    "HttpQuoteSource",
    # Execution
    "LedgerVenueExecutor",
    "venue_account",
    # Factory functions
    "create_aggregator",
    "create_quote_source",
]
