"""Token search plus per-token pool enrichment into a single payload."""

from __future__ import annotations

import asyncio
from typing import Optional

from ..config.settings import SearchConfig, get_app_config
from ..datalake.schemas import LiquidityResponse, Token, TokenWithPools, with_pools
from ..errors import MalformedRequestError, PartialEnrichmentFailure, UnsupportedChainError
from ..ingestion.pools import PoolService
from ..ingestion.subgraphs import is_chain_supported, supported_chain_names
from ..ingestion.token_search import TokenSearchService
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS


def validate_request(chain_id: object, query: object) -> None:
    """Raise the 400-class error matching the first invalid field."""

    if isinstance(chain_id, bool) or not isinstance(chain_id, int):
        raise MalformedRequestError("chainId must be a number")
    if not is_chain_supported(chain_id):
        raise UnsupportedChainError(chain_id, supported_chain_names())
    if not isinstance(query, str):
        raise MalformedRequestError("query must be a string")


class LiquidityAggregator:
    """Searches tokens, keeps the top N by TVL and attaches each one's pools.

    Enrichment runs concurrently, one worker-thread call per selected token.
    A failing enrichment leaves that token with no pools instead of failing
    the whole response.
    """

    def __init__(
        self,
        token_search: Optional[TokenSearchService] = None,
        pool_service: Optional[PoolService] = None,
        config: Optional[SearchConfig] = None,
    ) -> None:
        self._token_search = token_search or TokenSearchService()
        self._pool_service = pool_service or PoolService()
        self._config = config or get_app_config().search
        self._logger = get_logger(__name__)

    async def aggregate(self, chain_id: int, query: str) -> LiquidityResponse:
        validate_request(chain_id, query)
        METRICS.increment("aggregation.requests")
        with METRICS.timed("aggregation.aggregate"):
            limit = self._config.remote_token_limit
            search = await asyncio.to_thread(self._token_search.search_tokens, chain_id, query, limit)
            if not search.tokens:
                return LiquidityResponse(chain_id=chain_id, tokens=[])

            selected = sorted(search.tokens, key=lambda token: token.tvl_usd, reverse=True)[:limit]
            enriched = await asyncio.gather(*(self._enrich(chain_id, token) for token in selected))
        return LiquidityResponse(chain_id=chain_id, tokens=list(enriched))

    async def _enrich(self, chain_id: int, token: Token) -> TokenWithPools:
        try:
            result = await asyncio.to_thread(
                self._pool_service.get_pools_for_token,
                chain_id,
                token.address,
                self._config.pools_per_token,
            )
        except Exception as exc:  # noqa: BLE001 - one token must not fail the batch
            failure = PartialEnrichmentFailure(token.address, exc)
            METRICS.increment("aggregation.enrichment_failures")
            self._logger.warning("%s", failure)
            return with_pools(token, [])
        return with_pools(token, result.pools[: self._config.pools_per_token])


__all__ = ["LiquidityAggregator", "validate_request"]
