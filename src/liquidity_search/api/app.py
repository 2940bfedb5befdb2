"""HTTP surface of the liquidity aggregation endpoint."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .. import __version__
from ..aggregation.service import LiquidityAggregator
from ..config.settings import AppConfig, get_app_config
from ..errors import MalformedRequestError, UnsupportedChainError
from ..monitoring.logger import get_logger, search_context
from ..monitoring.metrics import METRICS

SEARCH_PATHS = ("/search", "/api/uniswap/liquidity")
INTERNAL_ERROR_MESSAGE = "Internal server error"

logger = get_logger(__name__)


def _error_body(message: str, chain_id: Any = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": message, "tokens": []}
    if chain_id is not None:
        body["chainId"] = chain_id
    return body


async def respond(aggregator: LiquidityAggregator, chain_id: Any, query: Any) -> Tuple[int, Dict[str, Any]]:
    """Run one aggregation and map the outcome to ``(status, body)``."""

    try:
        response = await aggregator.aggregate(chain_id, query)
    except UnsupportedChainError as exc:
        METRICS.increment("api.unsupported_chain")
        return exc.status_code, _error_body(
            f"Chain {exc.chain_id} is not supported for Uniswap v3 queries", exc.chain_id
        )
    except MalformedRequestError as exc:
        METRICS.increment("api.malformed_requests")
        return exc.status_code, _error_body(str(exc))
    except Exception:  # noqa: BLE001 - nothing internal leaks to the caller
        METRICS.increment("api.internal_errors")
        logger.exception("Unhandled liquidity aggregation error")
        return 500, _error_body(INTERNAL_ERROR_MESSAGE, 0)
    return 200, response.to_payload()


def create_app(
    aggregator: Optional[LiquidityAggregator] = None,
    config: Optional[AppConfig] = None,
) -> FastAPI:
    app_config = config or get_app_config()
    service = aggregator or LiquidityAggregator(config=app_config.search)
    app = FastAPI(title="Liquidity Search", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_config.server.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def correlation_middleware(request: Request, call_next):
        with search_context(correlation_id=request.headers.get("X-Request-ID")) as correlation_id:
            response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        return response

    async def search_post(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse(_error_body("request body must be JSON"), status_code=400)
        if not isinstance(body, dict):
            return JSONResponse(_error_body("request body must be an object"), status_code=400)
        status, payload = await respond(service, body.get("chainId"), body.get("query"))
        return JSONResponse(payload, status_code=status)

    async def search_get(
        chain_id: Optional[str] = Query(default=None, alias="chainId"),
        query: Optional[str] = Query(default=None),
    ) -> JSONResponse:
        if not chain_id:
            return JSONResponse(_error_body("chainId query parameter is required"), status_code=400)
        if not query:
            return JSONResponse(_error_body("query parameter is required"), status_code=400)
        try:
            parsed_chain = int(chain_id.strip(), 10)
        except ValueError:
            return JSONResponse(_error_body("chainId must be a valid number"), status_code=400)
        status, payload = await respond(service, parsed_chain, query)
        return JSONResponse(payload, status_code=status)

    for path in SEARCH_PATHS:
        app.add_api_route(path, search_post, methods=["POST"])
        app.add_api_route(path, search_get, methods=["GET"])

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/metrics", response_class=PlainTextResponse)
    async def prometheus_metrics() -> str:
        return METRICS.export_prometheus()

    return app


__all__ = ["create_app", "respond"]
