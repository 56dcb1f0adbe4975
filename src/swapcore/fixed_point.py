"""Fixed-width integer arithmetic for fees, prices and reserves.

Amounts are unsigned 64-bit values. Products are formed in a 128-bit
intermediate and must fit there before they are divided back down; a quotient
that no longer fits in 64 bits is an overflow too.
"""

from decimal import ROUND_DOWN, Decimal

from swapcore.errors import ArithmeticOverflow, ZeroAmount

U64_MAX = 2**64 - 1
U128_MAX = 2**128 - 1

BPS_DENOMINATOR = 10_000
PRICE_SCALE = 10**8


def check_u64(value: int, label: str = "value") -> int:
    """Ensure ``value`` is a non-negative integer representable as u64."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{label} must be an int, got {type(value).__name__}")
    if value < 0 or value > U64_MAX:
        raise ArithmeticOverflow(f"{label} {value} is outside the u64 range")
    return value


def require_positive(value: int, label: str = "amount") -> int:
    """Ensure ``value`` is a u64 greater than zero."""
    check_u64(value, label)
    if value == 0:
        raise ZeroAmount(f"{label} must be greater than zero")
    return value


def checked_add(a: int, b: int) -> int:
    """Add two u64 values, failing if the sum overflows."""
    total = a + b
    if total > U64_MAX:
        raise ArithmeticOverflow(f"{a} + {b} overflows u64")
    return total


def checked_sub(a: int, b: int) -> int:
    """Subtract ``b`` from ``a``, failing if the result is negative."""
    if b > a:
        raise ArithmeticOverflow(f"{a} - {b} underflows")
    return a - b


def mul_div(a: int, b: int, denominator: int) -> int:
    """Compute ``floor(a * b / denominator)`` with the u128 widening rule."""
    if denominator == 0:
        raise ZeroDivisionError("mul_div denominator is zero")
    product = a * b
    if product > U128_MAX:
        raise ArithmeticOverflow(f"{a} * {b} overflows u128")
    result = product // denominator
    if result > U64_MAX:
        raise ArithmeticOverflow(f"{a} * {b} / {denominator} overflows u64")
    return result


def apply_bps(amount: int, bps: int) -> int:
    """Return ``floor(amount * bps / 10000)``."""
    return mul_div(amount, bps, BPS_DENOMINATOR)


def net_of_fee(amount: int, fee_bps: int) -> int:
    """Return what is left of ``amount`` after a fee of ``fee_bps``."""
    return mul_div(amount, BPS_DENOMINATOR - fee_bps, BPS_DENOMINATOR)


def diff_bps(best: int, worst: int) -> int:
    """Relative gap between two outputs in basis points (0 if not comparable)."""
    if worst > 0 and best > worst:
        return mul_div(best - worst, BPS_DENOMINATOR, worst)
    return 0


def min_output_with_slippage(expected_output: int, slippage_bps: int) -> int:
    """Minimum acceptable output for a slippage tolerance in basis points."""
    if not 0 <= slippage_bps <= BPS_DENOMINATOR:
        raise ValueError(f"slippage_bps must be within 0..{BPS_DENOMINATOR}")
    return mul_div(expected_output, BPS_DENOMINATOR - slippage_bps, BPS_DENOMINATOR)


def format_amount(value: int, decimals: int = 8) -> str:
    """Render a base-unit amount with six decimal places."""
    scaled = Decimal(value) / (Decimal(10) ** decimals)
    return str(scaled.quantize(Decimal("0.000001"), rounding=ROUND_DOWN))


def format_bps(bps: int) -> str:
    """Render basis points as a percentage with two decimals."""
    return f"{Decimal(bps) / Decimal(100):.2f}"
