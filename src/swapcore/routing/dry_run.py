"""Quote sources that need no external service.

``StaticQuoteSource`` answers from a fixed table and is what tests inject.
``RateQuoteSource`` scales the input by a per-venue rate and backs dry-run
mode, the same way simulated providers stand in for live venues.
"""

import logging
from typing import Mapping, Optional

from swapcore.assets import TokenPair
from swapcore.fixed_point import BPS_DENOMINATOR, apply_bps
from swapcore.routing.base import NO_LIQUIDITY, QuoteSource, VenueQuote

logger = logging.getLogger(__name__)


class StaticQuoteSource(QuoteSource):
    """Returns the same quote for a venue regardless of the input amount."""

    def __init__(self, quotes: Mapping[int, VenueQuote]):
        self._quotes = dict(quotes)

    @property
    def name(self) -> str:
        return "Static"

    def set_quote(self, venue_id: int, quote: VenueQuote) -> None:
        self._quotes[venue_id] = quote

    async def get_quote(
        self,
        venue_id: int,
        amount_in: int,
        pair: Optional[TokenPair] = None,
    ) -> VenueQuote:
        return self._quotes.get(venue_id, NO_LIQUIDITY)


class RateQuoteSource(QuoteSource):
    """Prices ``amount_in`` at a fixed per-venue rate.

    Args:
        rates_bps: Output per unit of input, in basis points (9850 = 0.985)
        price_impact_bps: Impact reported with every quote
    """

    def __init__(self, rates_bps: Mapping[int, int], price_impact_bps: int = 0):
        self.rates_bps = dict(rates_bps)
        self.price_impact_bps = price_impact_bps

    @property
    def name(self) -> str:
        return "Dry Run"

    async def get_quote(
        self,
        venue_id: int,
        amount_in: int,
        pair: Optional[TokenPair] = None,
    ) -> VenueQuote:
        rate = self.rates_bps.get(venue_id, 0)
        if rate <= 0 or amount_in == 0:
            return NO_LIQUIDITY
        amount_out = apply_bps(amount_in, rate)
        logger.debug(
            f"Dry-run quote venue {venue_id}: {amount_in} -> {amount_out} "
            f"(rate {rate}/{BPS_DENOMINATOR})"
        )
        return VenueQuote(amount_out, self.price_impact_bps if amount_out else 0)
