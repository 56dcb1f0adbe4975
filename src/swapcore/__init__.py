"""Settlement core: atomic swaps, escrow pools and venue routing over one ledger."""

__version__ = "0.1.0"
