"""Factory for creating quote sources and route aggregators.

Uses the HTTP quote service when one is configured, otherwise falls back
to simulated per-venue rates.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from swapcore.config import Settings, get_settings
from swapcore.routing.aggregator import RouteAggregator
from swapcore.routing.base import QuoteSource, VenueExecutor
from swapcore.utils.clock import Clock

logger = logging.getLogger(__name__)


def create_quote_source(settings: Optional[Settings] = None) -> QuoteSource:
    """Create the quote source for the current settings.

    The HTTP source is used only outside dry-run mode and when
    ``quote_api_url`` is set.
    """
    settings = settings or get_settings()

    if settings.quote_api_url and not settings.dry_run:
        from swapcore.routing.http_quotes import HttpQuoteSource

        logger.info(f"Using HTTP quote service at {settings.quote_api_url}")
        return HttpQuoteSource(settings.quote_api_url, timeout=settings.quote_timeout_seconds)

    if not settings.dry_run:
        logger.warning("QUOTE_API_URL not set, falling back to simulated venue rates")

    # Fallback to simulated
    from swapcore.routing.dry_run import RateQuoteSource

    return RateQuoteSource(settings.dry_run_rates)


def create_aggregator(
    quote_source: Optional[QuoteSource] = None,
    executor: Optional[VenueExecutor] = None,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    clock: Optional[Clock] = None,
    settings: Optional[Settings] = None,
) -> RouteAggregator:
    """Create a route aggregator with the configured quote source.

    Args:
        quote_source: Override the source chosen from settings
        executor: Override the default ledger-backed venue executor
        session_factory: Session factory for the ledger database
        clock: Time source (unix seconds)
        settings: Settings to use instead of the cached ones

    Returns:
        Configured RouteAggregator
    """
    settings = settings or get_settings()
    source = quote_source or create_quote_source(settings)
    logger.debug(f"Aggregator quote source: {source.name}")
    return RouteAggregator(
        source,
        executor=executor,
        session_factory=session_factory,
        clock=clock,
        settings=settings,
    )
