"""Time-locked bilateral atomic swaps."""

from swapcore.atomic.engine import AtomicSwapEngine

__all__ = ["AtomicSwapEngine"]
