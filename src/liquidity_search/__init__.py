"""Multi-source token and liquidity search."""

__version__ = "0.1.0"
