"""Asset symbols and token pairs."""

from typing import NamedTuple

from swapcore.errors import InvalidTokenPair


def normalize_asset(asset: str) -> str:
    """Canonical form of an asset symbol (e.g. ``apt`` -> ``APT``)."""
    symbol = asset.strip().upper()
    if not symbol:
        raise InvalidTokenPair("Asset symbol cannot be empty")
    return symbol


class TokenPair(NamedTuple):
    """Ordered pair of assets; ``x`` is the base side, ``y`` the quote side."""

    x: str
    y: str

    @classmethod
    def of(cls, x: str, y: str) -> "TokenPair":
        """Build a normalized pair of two different assets."""
        pair = cls(normalize_asset(x), normalize_asset(y))
        if pair.x == pair.y:
            raise InvalidTokenPair(f"Token pair needs two different assets, got {pair.x}/{pair.y}")
        return pair

    @classmethod
    def coerce(cls, pair, distinct: bool = True) -> "TokenPair":
        """Normalize any ``(x, y)`` sequence; atomic swaps may use one asset twice."""
        x, y = pair
        if distinct:
            return cls.of(x, y)
        return cls(normalize_asset(x), normalize_asset(y))

    def reversed(self) -> "TokenPair":
        return TokenPair(self.y, self.x)

    def __str__(self) -> str:
        return f"{self.x}/{self.y}"
