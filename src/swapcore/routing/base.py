"""Abstract collaborator interfaces for the route aggregator."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from swapcore.assets import TokenPair
from swapcore.contracts.routes import VenueInfo
from swapcore.ledger.custody import Coin
from swapcore.ledger.repository import LedgerRepository


@dataclass(frozen=True)
class VenueQuote:
    """A venue's answer for an exact input amount."""

    amount_out: int
    price_impact_bps: int = 0

    @property
    def has_liquidity(self) -> bool:
        return self.amount_out > 0


NO_LIQUIDITY = VenueQuote(0, 0)


class QuoteSource(ABC):
    """Prices an input amount at a venue.

    Implementations must be free of side effects. Returning ``NO_LIQUIDITY``
    (``amount_out == 0``) signals that the venue cannot fill the order; raising
    ``QuoteSourceError`` signals the source itself failed.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name identifier."""
        pass

    @abstractmethod
    async def get_quote(
        self,
        venue_id: int,
        amount_in: int,
        pair: Optional[TokenPair] = None,
    ) -> VenueQuote:
        """
        Get a quote.

        Args:
            venue_id: Registered venue id
            amount_in: Amount of ``pair.x`` to sell
            pair: Assets being swapped (x sold, y bought)

        Returns:
            Output amount and price impact in basis points
        """
        pass


class VenueExecutor(ABC):
    """Fills a routed order at a venue."""

    @abstractmethod
    async def execute(
        self,
        venue: VenueInfo,
        coin_in: Coin,
        pair: TokenPair,
        ledger: LedgerRepository,
    ) -> Coin:
        """
        Execute a swap at ``venue``.

        The executor takes custody of ``coin_in`` and must return a coin of
        ``pair.y``. It runs inside the aggregator's transaction, so any
        exception undoes the whole routed swap.

        Args:
            venue: Venue chosen by the aggregator
            coin_in: Input after the aggregator fee
            pair: Assets being swapped (x sold, y bought)
            ledger: Repository bound to the aggregator's transaction

        Returns:
            Output coin to be deposited to the user
        """
        pass

    def accounts(self, venue_id: int) -> list[str]:
        """Ledger accounts written when filling at ``venue_id``.

        The aggregator holds the record locks for these accounts for the
        whole routed swap.
        """
        return []
