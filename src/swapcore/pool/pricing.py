"""Constant-product pricing.

The fee is taken on the input: only ``amount_in_net`` moves the curve, while
the whole ``amount_in`` lands in the reserve. The product of the reserves
therefore never decreases across a swap and grows whenever the fee is
non-zero.
"""

from swapcore.errors import InsufficientLiquidity
from swapcore.fixed_point import (
    BPS_DENOMINATOR,
    PRICE_SCALE,
    checked_add,
    mul_div,
    net_of_fee,
)


def get_amount_out(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    fee_bps: int,
) -> tuple[int, int]:
    """Return ``(amount_out, fee)`` for an exact input.

    Args:
        amount_in: Input amount, fee included
        reserve_in: Reserve of the input asset
        reserve_out: Reserve of the output asset
        fee_bps: Fee in basis points taken from the input

    Returns:
        Output amount and the part of ``amount_in`` kept as fee
    """
    if reserve_in == 0 or reserve_out == 0:
        raise InsufficientLiquidity("Pool reserve is empty")
    amount_in_net = net_of_fee(amount_in, fee_bps)
    fee = amount_in - amount_in_net
    amount_out = mul_div(reserve_out, amount_in_net, checked_add(reserve_in, amount_in_net))
    return amount_out, fee


def spot_price(reserve_x: int, reserve_y: int) -> int:
    """Price of X in units of Y, scaled by 10^8."""
    if reserve_x == 0:
        raise InsufficientLiquidity("Pool reserve is empty")
    return mul_div(reserve_y, PRICE_SCALE, reserve_x)


def price_impact_bps(amount_in: int, amount_out: int, reserve_in: int, reserve_out: int) -> int:
    """Shortfall of ``amount_out`` against the spot-price output, in basis points."""
    if reserve_in == 0 or amount_in == 0:
        return 0
    spot_out = mul_div(amount_in, reserve_out, reserve_in)
    if spot_out == 0 or amount_out >= spot_out:
        return 0
    return mul_div(spot_out - amount_out, BPS_DENOMINATOR, spot_out)
