"""Remote liquidity sources consumed by the search orchestrator."""

from __future__ import annotations

import asyncio
from typing import Optional, Protocol

import requests

from ..aggregation.service import LiquidityAggregator
from ..api.app import respond
from ..config.settings import SearchConfig, get_app_config
from ..datalake.schemas import LiquidityResponse
from ..errors import ConfigurationError
from ..monitoring.logger import get_logger


class LiquiditySource(Protocol):
    async def fetch(self, chain_id: int, query: str) -> LiquidityResponse:
        ...


class AggregatorLiquiditySource:
    """Calls the aggregation service in-process with the endpoint's status mapping."""

    def __init__(self, aggregator: Optional[LiquidityAggregator] = None) -> None:
        self._aggregator = aggregator or LiquidityAggregator()

    async def fetch(self, chain_id: int, query: str) -> LiquidityResponse:
        status, payload = await respond(self._aggregator, chain_id, query)
        if status != 200:
            return LiquidityResponse(chain_id=chain_id, tokens=[], error=payload.get("error"))
        return LiquidityResponse.from_payload(payload, chain_id=chain_id)


class HttpLiquiditySource:
    """POSTs to a running aggregation endpoint; failures come back as ``error``."""

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config or get_app_config().search
        if self._config.endpoint_url is None:
            raise ConfigurationError("search.endpoint_url must be set to use the HTTP liquidity source")
        self._url = f"{str(self._config.endpoint_url).rstrip('/')}/search"
        self._session = session or requests.Session()
        self._logger = get_logger(__name__)

    async def fetch(self, chain_id: int, query: str) -> LiquidityResponse:
        return await asyncio.to_thread(self._post, chain_id, query)

    def _post(self, chain_id: int, query: str) -> LiquidityResponse:
        try:
            response = self._session.post(
                self._url,
                json={"chainId": chain_id, "query": query},
                timeout=self._config.endpoint_timeout,
            )
        except requests.RequestException as exc:
            self._logger.warning("Liquidity endpoint unreachable: %s", exc)
            return LiquidityResponse(chain_id=chain_id, tokens=[], error=f"Failed to fetch liquidity data: {exc}")
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        if not response.ok:
            message = payload.get("error") or f"HTTP error: {response.status_code}"
            return LiquidityResponse(chain_id=chain_id, tokens=[], error=str(message))
        return LiquidityResponse.from_payload(payload, chain_id=chain_id)


__all__ = ["AggregatorLiquiditySource", "HttpLiquiditySource", "LiquiditySource"]
