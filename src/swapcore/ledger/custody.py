"""Exclusive custody of fungible value.

A ``Coin`` is the only way value moves between accounts, swaps and pools.
It cannot be copied, and once merged into another coin or deposited its
value is gone from it, so the same balance can never be spent twice.
"""

from swapcore.errors import CustodyError
from swapcore.fixed_point import check_u64, checked_add


class Coin:
    """A balance of a single asset held in custody."""

    __slots__ = ("asset", "_value", "_consumed")

    def __init__(self, asset: str, value: int):
        self.asset = asset
        self._value = check_u64(value, "coin value")
        self._consumed = False

    @classmethod
    def zero(cls, asset: str) -> "Coin":
        return cls(asset, 0)

    @property
    def value(self) -> int:
        self._ensure_live()
        return self._value

    def extract(self, amount: int) -> "Coin":
        """Split ``amount`` off into a new coin."""
        self._ensure_live()
        check_u64(amount, "extract amount")
        if amount > self._value:
            raise CustodyError(
                f"Cannot extract {amount} {self.asset} from coin holding {self._value}"
            )
        self._value -= amount
        return Coin(self.asset, amount)

    def extract_all(self) -> "Coin":
        return self.extract(self.value)

    def merge(self, other: "Coin") -> None:
        """Absorb ``other`` into this coin; ``other`` is consumed."""
        self._ensure_live()
        if other is self:
            raise CustodyError("Cannot merge a coin into itself")
        if other.asset != self.asset:
            raise CustodyError(f"Cannot merge {other.asset} into {self.asset}")
        self._value = checked_add(self._value, other.consume())

    def consume(self) -> int:
        """Take the whole value out of the coin, leaving it unusable."""
        self._ensure_live()
        value = self._value
        self._value = 0
        self._consumed = True
        return value

    def destroy_zero(self) -> None:
        if self.value != 0:
            raise CustodyError(f"Coin still holds {self._value} {self.asset}")
        self._consumed = True

    @property
    def consumed(self) -> bool:
        return self._consumed

    def _ensure_live(self) -> None:
        if self._consumed:
            raise CustodyError(f"{self.asset} coin was already moved")

    def __copy__(self):
        raise CustodyError("Coins cannot be copied")

    def __deepcopy__(self, memo):
        raise CustodyError("Coins cannot be copied")

    def __reduce__(self):
        raise CustodyError("Coins cannot be serialized")

    def __repr__(self) -> str:
        state = "consumed" if self._consumed else str(self._value)
        return f"Coin({self.asset!r}, {state})"


class CustodySlot:
    """Descriptor exposing an integer column as coin custody.

    The owning record stores the held value in ``column``; the slot turns
    reads into ``Coin`` releases and writes into merges, so the only way to
    move value in or out is through ``release`` and ``absorb``.
    """

    def __init__(self, column: str, asset_attr: str):
        self.column = column
        self.asset_attr = asset_attr

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, record, owner=None):
        if record is None:
            return self
        return _BoundSlot(record, self)

    def __set__(self, record, value):
        raise CustodyError(f"{self.name} can only change through release/absorb")


class _BoundSlot:
    __slots__ = ("_record", "_slot")

    def __init__(self, record, slot: CustodySlot):
        self._record = record
        self._slot = slot

    @property
    def asset(self) -> str:
        return getattr(self._record, self._slot.asset_attr)

    @property
    def value(self) -> int:
        return getattr(self._record, self._slot.column) or 0

    def release(self, amount: int) -> Coin:
        """Move ``amount`` out of the record into a new coin."""
        held = self.value
        if amount > held:
            raise CustodyError(f"Cannot release {amount} {self.asset}, holding {held}")
        setattr(self._record, self._slot.column, held - amount)
        return Coin(self.asset, amount)

    def release_all(self) -> Coin:
        return self.release(self.value)

    def absorb(self, coin: Coin) -> None:
        """Merge ``coin`` into the record's custody."""
        if coin.asset != self.asset:
            raise CustodyError(f"Cannot hold {coin.asset} in a {self.asset} slot")
        setattr(self._record, self._slot.column, checked_add(self.value, coin.consume()))
