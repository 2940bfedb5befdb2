"""GraphQL request executor for the per-chain Uniswap v3 subgraphs."""

from __future__ import annotations

from typing import Any, Dict, Optional

import requests

from ..config.settings import SubgraphConfig, get_app_config
from ..errors import UpstreamQueryError
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from .subgraphs import get_subgraph_endpoint

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "User-Agent": "liquidity-search/0.1",
}


class SubgraphClient:
    """Executes one query against the chain's subgraph. Never retries."""

    def __init__(
        self,
        config: Optional[SubgraphConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config or get_app_config().subgraph
        self._session = session or requests.Session()
        self._logger = get_logger(__name__)

    def execute(
        self,
        chain_id: int,
        document: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        endpoint = get_subgraph_endpoint(chain_id, self._config)
        preview = document.strip()[: self._config.query_preview_chars]
        labels = {"chain_id": chain_id}
        METRICS.increment("subgraph.requests", labels=labels)
        with METRICS.timed("subgraph.query", labels=labels):
            try:
                response = self._session.post(
                    endpoint,
                    json={"query": document, "variables": variables or {}},
                    headers=DEFAULT_HEADERS,
                    timeout=self._config.request_timeout,
                )
            except requests.Timeout as exc:
                METRICS.increment("subgraph.errors", labels=labels)
                raise UpstreamQueryError(
                    chain_id, f"timed out after {self._config.request_timeout:.0f}s", preview
                ) from exc
            except requests.RequestException as exc:
                METRICS.increment("subgraph.errors", labels=labels)
                raise UpstreamQueryError(chain_id, f"transport error: {exc}", preview) from exc

        if not 200 <= response.status_code < 300:
            METRICS.increment("subgraph.errors", labels=labels)
            detail = (response.text or response.reason or "").strip()[:200]
            raise UpstreamQueryError(
                chain_id, f"HTTP error {response.status_code} {response.reason or ''}. {detail}".strip(), preview
            )
        try:
            envelope = response.json()
        except ValueError as exc:
            METRICS.increment("subgraph.errors", labels=labels)
            raise UpstreamQueryError(chain_id, "response body is not JSON", preview) from exc
        if not isinstance(envelope, dict):
            METRICS.increment("subgraph.errors", labels=labels)
            raise UpstreamQueryError(chain_id, "unexpected response envelope", preview)

        errors = envelope.get("errors") or []
        if errors:
            METRICS.increment("subgraph.errors", labels=labels)
            messages = ", ".join(
                str(item.get("message", item)) if isinstance(item, dict) else str(item) for item in errors
            )
            raise UpstreamQueryError(chain_id, f"GraphQL error: {messages}", preview)

        data = envelope.get("data")
        if data is None:
            METRICS.increment("subgraph.errors", labels=labels)
            raise UpstreamQueryError(chain_id, "subgraph returned no data", preview)
        self._logger.debug("Subgraph query ok", extra={"chain_id": chain_id, "keys": sorted(data)})
        return data


__all__ = ["SubgraphClient"]
