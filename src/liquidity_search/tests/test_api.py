from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from httpx import ASGITransport, AsyncClient

from liquidity_search.aggregation.service import validate_request
from liquidity_search.api.app import create_app, respond
from liquidity_search.config.settings import AppConfig
from liquidity_search.datalake.schemas import LiquidityResponse, Token, with_pools
from liquidity_search.errors import MalformedRequestError, UnsupportedChainError
from liquidity_search.monitoring.metrics import METRICS


class FakeAggregator:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self._error = error
        self.calls: List[Tuple[Any, Any]] = []

    async def aggregate(self, chain_id: Any, query: Any) -> LiquidityResponse:
        validate_request(chain_id, query)
        self.calls.append((chain_id, query))
        if self._error is not None:
            raise self._error
        token = Token(address="0xabc", symbol="ABC", name="Alphabet", tvl_usd=12.0)
        return LiquidityResponse(chain_id=chain_id, tokens=[with_pools(token, [])])


def _request(app, method: str, path: str, **kwargs: Any):
    async def _exercise():
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            return await client.request(method, path, **kwargs)

    return asyncio.run(_exercise())


def _app(aggregator: Optional[FakeAggregator] = None):
    return create_app(aggregator=aggregator or FakeAggregator(), config=AppConfig())


def test_post_search_returns_tokens() -> None:
    response = _request(_app(), "POST", "/search", json={"chainId": 1, "query": "abc"})

    assert response.status_code == 200
    body = response.json()
    assert body["chainId"] == 1
    assert body["tokens"][0]["symbol"] == "ABC"
    assert body["tokens"][0]["pools"] == []
    assert response.headers["X-Request-ID"]


def test_legacy_path_is_an_alias() -> None:
    response = _request(_app(), "POST", "/api/uniswap/liquidity", json={"chainId": 1, "query": "abc"})
    assert response.status_code == 200


def test_unsupported_chain_is_a_client_error() -> None:
    aggregator = FakeAggregator()
    response = _request(_app(aggregator), "POST", "/search", json={"chainId": 11155111, "query": "abc"})

    assert response.status_code == 400
    assert response.json() == {
        "error": "Chain 11155111 is not supported for Uniswap v3 queries",
        "tokens": [],
        "chainId": 11155111,
    }
    assert aggregator.calls == []


def test_malformed_body_fields_are_rejected() -> None:
    for body in ({"chainId": "1", "query": "abc"}, {"chainId": 1, "query": 5}, {"query": "abc"}):
        response = _request(_app(), "POST", "/search", json=body)
        assert response.status_code == 400
        assert response.json()["tokens"] == []


def test_non_json_body_is_rejected() -> None:
    response = _request(_app(), "POST", "/search", content=b"chainId=1", headers={"Content-Type": "text/plain"})
    assert response.status_code == 400


def test_unhandled_error_does_not_leak_details() -> None:
    aggregator = FakeAggregator(error=RuntimeError("secret stack detail"))
    response = _request(_app(aggregator), "POST", "/search", json={"chainId": 1, "query": "abc"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "tokens": [], "chainId": 0}
    assert METRICS.get("api.internal_errors") == 1


def test_get_adapter_parses_chain_id() -> None:
    aggregator = FakeAggregator()
    response = _request(_app(aggregator), "GET", "/search", params={"chainId": "42161", "query": "abc"})

    assert response.status_code == 200
    assert aggregator.calls == [(42161, "abc")]


def test_get_adapter_validation() -> None:
    app = _app()
    cases: List[Dict[str, str]] = [
        {"query": "abc"},
        {"chainId": "1"},
        {"chainId": "1", "query": ""},
        {"chainId": "one", "query": "abc"},
    ]
    for params in cases:
        response = _request(app, "GET", "/search", params=params)
        assert response.status_code == 400, params


def test_health_and_metrics_endpoints() -> None:
    app = _app()
    _request(app, "POST", "/search", json={"chainId": 999, "query": "abc"})

    health = _request(app, "GET", "/health")
    metrics = _request(app, "GET", "/metrics")

    assert health.json() == {"status": "ok"}
    assert metrics.status_code == 200
    assert "api_unsupported_chain" in metrics.text


def test_respond_maps_malformed_request() -> None:
    status, body = asyncio.run(respond(FakeAggregator(error=MalformedRequestError("nope")), 1, "abc"))
    assert status == 400
    assert body == {"error": "nope", "tokens": []}


def test_respond_maps_unsupported_chain_raised_late() -> None:
    aggregator = FakeAggregator(error=UnsupportedChainError(1, ["ETHEREUM"]))
    status, body = asyncio.run(respond(aggregator, 1, "abc"))
    assert status == 400
    assert body["chainId"] == 1
