"""Aggregation of token search and pool enrichment."""

from .service import LiquidityAggregator, validate_request

__all__ = ["LiquidityAggregator", "validate_request"]
