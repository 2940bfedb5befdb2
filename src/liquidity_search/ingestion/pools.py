"""Fetch the pools that contain a token via the Uniswap v3 subgraph."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..datalake.schemas import Pool, PoolToken, TokenPoolsResult
from ..errors import ConfigurationError, LiquiditySearchError
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from .subgraph_client import SubgraphClient
from .token_search import MAX_RESULTS

POOLS_FOR_TOKEN_QUERY = """
  query PoolsForToken($token: String!, $first: Int!) {
    pools(
      where: {
        or: [
          { token0: $token }
          { token1: $token }
        ]
      }
      orderBy: totalValueLockedUSD
      orderDirection: desc
      first: $first
    ) {
      id
      feeTier
      liquidity
      sqrtPrice
      tick
      totalValueLockedUSD
      volumeUSD
      token0 {
        id
        symbol
        name
        decimals
      }
      token1 {
        id
        symbol
        name
        decimals
      }
    }
  }
"""


def _number(value: Any, cast=float, default=0):
    try:
        return cast(value)
    except (TypeError, ValueError):
        return default


def _pool_token(item: Any) -> PoolToken:
    item = item if isinstance(item, dict) else {}
    return PoolToken(
        address=str(item.get("id") or "").lower(),
        symbol=str(item.get("symbol") or ""),
        name=str(item.get("name") or ""),
        decimals=_number(item.get("decimals"), int, 18),
    )


def parse_pool(chain_id: int, item: Dict[str, Any]) -> Pool:
    tick = item.get("tick")
    return Pool(
        pool_address=str(item.get("id") or "").lower(),
        chain_id=chain_id,
        fee_tier_bps=_number(item.get("feeTier"), int, 0),
        liquidity=str(item.get("liquidity") or "0"),
        sqrt_price=str(item.get("sqrtPrice") or "0"),
        tick=_number(tick, int, None) if tick is not None else None,
        tvl_usd=max(_number(item.get("totalValueLockedUSD"), float, 0.0), 0.0),
        volume_usd=max(_number(item.get("volumeUSD"), float, 0.0), 0.0),
        token0=_pool_token(item.get("token0")),
        token1=_pool_token(item.get("token1")),
    )


class PoolService:
    """Pools containing a token, most liquid first; degrades to empty on upstream failure."""

    def __init__(self, client: Optional[SubgraphClient] = None) -> None:
        self._client = client or SubgraphClient()
        self._logger = get_logger(__name__)

    def get_pools_for_token(self, chain_id: int, token_address: str, limit: int = 50) -> TokenPoolsResult:
        token = (token_address or "").lower()
        first = min(max(int(limit), 1), MAX_RESULTS)
        try:
            data = self._client.execute(chain_id, POOLS_FOR_TOKEN_QUERY, {"token": token, "first": first})
        except ConfigurationError:
            raise
        except LiquiditySearchError as exc:
            METRICS.increment("pools.recovered_failures")
            self._logger.warning("Pool fetch failed for token %s on chain %s: %s", token, chain_id, exc)
            return TokenPoolsResult(chain_id=chain_id, token_address=token, pools=[])

        pools: List[Pool] = [
            parse_pool(chain_id, item) for item in (data or {}).get("pools") or [] if isinstance(item, dict)
        ]
        pools.sort(key=lambda pool: pool.tvl_usd, reverse=True)
        return TokenPoolsResult(chain_id=chain_id, token_address=token, pools=pools[:first])


__all__ = ["POOLS_FOR_TOKEN_QUERY", "PoolService", "parse_pool"]
