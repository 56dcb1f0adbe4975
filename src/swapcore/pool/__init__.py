"""Constant-product escrow liquidity pools."""

from swapcore.pool.engine import EscrowPoolEngine
from swapcore.pool.pricing import get_amount_out, price_impact_bps, spot_price

__all__ = ["EscrowPoolEngine", "get_amount_out", "price_impact_bps", "spot_price"]
