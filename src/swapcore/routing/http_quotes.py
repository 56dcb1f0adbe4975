"""Quote source backed by an HTTP quote service.

The service answers ``GET {base_url}/quote`` with JSON of the form
``{"amount_out": "...", "price_impact_bps": ...}``. Amounts are base-unit
integers; strings are accepted so u64 values survive JSON number parsing.
"""

import logging
from typing import Optional

import httpx

from swapcore.assets import TokenPair
from swapcore.errors import ArithmeticOverflow, QuoteSourceError
from swapcore.fixed_point import check_u64
from swapcore.routing.base import NO_LIQUIDITY, QuoteSource, VenueQuote

logger = logging.getLogger(__name__)


class HttpQuoteSource(QuoteSource):
    """Asks a remote quote service for each venue's output."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the HTTP quote source.

        Args:
            base_url: Root URL of the quote service
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "HTTP"

    async def get_quote(
        self,
        venue_id: int,
        amount_in: int,
        pair: Optional[TokenPair] = None,
    ) -> VenueQuote:
        params = {"venue_id": venue_id, "amount_in": str(amount_in)}
        if pair is not None:
            params["asset_in"] = pair.x
            params["asset_out"] = pair.y

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(f"{self.base_url}/quote", params=params)
        except httpx.HTTPError as e:
            raise QuoteSourceError(f"Quote request for venue {venue_id} failed: {e}") from e

        if response.status_code == 404:
            logger.debug(f"Quote service has no route for venue {venue_id}")
            return NO_LIQUIDITY
        if response.status_code != 200:
            raise QuoteSourceError(
                f"Quote service returned {response.status_code} for venue {venue_id}"
            )

        try:
            data = response.json()
            amount_out = check_u64(int(data.get("amount_out", 0)), "amount_out")
            impact = int(data.get("price_impact_bps", 0))
        except (ValueError, TypeError, AttributeError, ArithmeticOverflow) as e:
            raise QuoteSourceError(f"Malformed quote for venue {venue_id}: {e}") from e

        if amount_out == 0:
            return NO_LIQUIDITY
        return VenueQuote(amount_out, impact)
