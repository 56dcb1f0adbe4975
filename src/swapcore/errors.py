"""Typed error taxonomy for settlement operations.

Every failure raised by the engines is a ``SettlementError`` subclass with a
stable ``code`` so callers can tell "retry before the timeout" apart from
"this swap is gone forever" without parsing messages. Raising any of these
inside an operation aborts it and rolls back every change it made.
"""

from typing import Optional


class SettlementError(Exception):
    """Base class for all settlement failures."""

    code = "settlement_error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class NotInitialized(SettlementError):
    """Registry has not been initialized."""

    code = "not_initialized"


class AlreadyInitialized(SettlementError):
    """Record already exists."""

    code = "already_initialized"


class NotFound(SettlementError):
    """Swap, pool or venue does not exist."""

    code = "not_found"


class ZeroAmount(SettlementError):
    """Amount must be greater than zero."""

    code = "zero_amount"


class InvalidVenueId(SettlementError):
    """Venue id is not registered."""

    code = "invalid_venue_id"


class SlippageExceeded(SettlementError):
    """Output is below the caller's minimum."""

    code = "slippage_exceeded"

    def __init__(self, amount_out: int, min_amount_out: int):
        self.amount_out = amount_out
        self.min_amount_out = min_amount_out
        super().__init__(f"Output {amount_out} is below minimum {min_amount_out}")


class InsufficientLiquidity(SettlementError):
    """Reserve cannot cover the requested amount."""

    code = "insufficient_liquidity"


class NotAuthorized(SettlementError):
    """Caller is not allowed to perform this operation."""

    code = "not_authorized"


class AlreadyTerminal(SettlementError):
    """Swap is already completed or cancelled."""

    code = "already_terminal"


class SwapExpired(SettlementError):
    """Swap timeout has passed; only the initiator can cancel it now."""

    code = "swap_expired"


class SwapNotExpired(SettlementError):
    """Swap cannot be cancelled before its timeout."""

    code = "swap_not_expired"


class NoRoutesFound(SettlementError):
    """No enabled venue returned a positive output."""

    code = "no_routes_found"


class VenueUnavailable(SettlementError):
    """Venue is disabled or cannot fill the order."""

    code = "venue_unavailable"


class InsufficientBalance(SettlementError):
    """Account does not hold enough unencumbered balance."""

    code = "insufficient_balance"

    def __init__(self, owner: str, asset: str, available: int, requested: int):
        self.owner = owner
        self.asset = asset
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient balance: {owner} has {available} {asset}, need {requested}"
        )


class ArithmeticOverflow(SettlementError):
    """Value does not fit in the fixed-width integer range."""

    code = "arithmetic_overflow"


class InvalidTimeout(SettlementError):
    """Swap timeout must not be negative."""

    code = "invalid_timeout"


class InvalidTokenPair(SettlementError):
    """Token pair must name two different assets."""

    code = "invalid_token_pair"


class QuoteSourceError(SettlementError):
    """Quote collaborator failed to answer."""

    code = "quote_source_error"


class CustodyError(RuntimeError):
    """Raised when a Coin is used after its value was moved elsewhere.

    This is a programming error rather than a settlement failure, so it is
    not part of the ``SettlementError`` hierarchy.
    """
