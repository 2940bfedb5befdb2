"""Display helpers for token metrics."""

from __future__ import annotations

from typing import Optional

from ..datalake.schemas import Pool


def format_tvl(tvl_usd: float) -> str:
    if tvl_usd >= 1e9:
        return f"${tvl_usd / 1e9:.2f}B"
    if tvl_usd >= 1e6:
        return f"${tvl_usd / 1e6:.2f}M"
    if tvl_usd >= 1e3:
        return f"${tvl_usd / 1e3:.2f}K"
    return f"${tvl_usd:.2f}"


def format_fee_tier(fee_tier_bps: int) -> str:
    """Fee tiers arrive in hundredths of a basis point (500 -> 0.05%)."""

    return f"{fee_tier_bps / 10_000:.2f}%"


def shorten_address(address: str) -> str:
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def describe_pool(pool: Optional[Pool]) -> Optional[str]:
    if pool is None:
        return None
    pair = f"{pool.token0.symbol}/{pool.token1.symbol}"
    return f"{pair} {format_fee_tier(pool.fee_tier_bps)} · TVL {format_tvl(pool.tvl_usd)}"


__all__ = ["describe_pool", "format_fee_tier", "format_tvl", "shorten_address"]
