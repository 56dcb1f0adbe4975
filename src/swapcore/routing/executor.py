"""Venue execution against ledger-held venue inventory.

Each venue is represented by a ledger account that holds the inventory it
pays out of. Routed input is deposited there and the quoted output is
withdrawn from it, so a routed swap moves value exactly like any other
transfer and rolls back with the aggregator's transaction.
"""

import logging

from swapcore.assets import TokenPair
from swapcore.contracts.routes import VenueInfo
from swapcore.errors import InsufficientBalance, VenueUnavailable
from swapcore.ledger.custody import Coin
from swapcore.ledger.repository import LedgerRepository
from swapcore.routing.base import QuoteSource, VenueExecutor

logger = logging.getLogger(__name__)


def venue_account(admin: str, venue_id: int) -> str:
    """Ledger account holding a venue's inventory."""
    return f"venue:{admin}:{venue_id}"


class LedgerVenueExecutor(VenueExecutor):
    """Fills orders from venue inventory accounts at the quoted rate."""

    def __init__(self, quote_source: QuoteSource, admin: str):
        self.quote_source = quote_source
        self.admin = admin

    def accounts(self, venue_id: int) -> list[str]:
        return [venue_account(self.admin, venue_id)]

    async def execute(
        self,
        venue: VenueInfo,
        coin_in: Coin,
        pair: TokenPair,
        ledger: LedgerRepository,
    ) -> Coin:
        amount_in = coin_in.value
        quote = await self.quote_source.get_quote(venue.id, amount_in, pair)
        if not quote.has_liquidity:
            raise VenueUnavailable(f"{venue.name} cannot fill {amount_in} {pair.x}")

        account = venue_account(self.admin, venue.id)
        await ledger.deposit(account, coin_in)
        try:
            coin_out = await ledger.withdraw(account, pair.y, quote.amount_out)
        except InsufficientBalance as e:
            logger.warning(f"{venue.name} inventory short: {e}")
            raise VenueUnavailable(
                f"{venue.name} holds {e.available} {pair.y}, needs {quote.amount_out}"
            ) from e

        logger.debug(f"{venue.name} filled {amount_in} {pair.x} -> {quote.amount_out} {pair.y}")
        return coin_out
