"""Orderbook liquidity for a selected token pair."""

from .client import OrderbookClient, calculate_liquidity, format_liquidity
from .monitor import OrderbookLiquidityMonitor

__all__ = ["OrderbookClient", "OrderbookLiquidityMonitor", "calculate_liquidity", "format_liquidity"]
