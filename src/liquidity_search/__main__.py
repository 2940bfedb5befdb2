"""Command line entry point: serve the endpoint or run one-off lookups."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import List, Optional

import uvicorn

from .api.app import create_app
from .config.settings import get_app_config
from .monitoring import bootstrap_observability
from .orderbook.client import OrderbookClient, format_liquidity
from .search.orchestrator import SearchOrchestrator


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="liquidity_search", description="Token and liquidity search")
    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Run the liquidity aggregation endpoint")
    serve.add_argument("--host", help="Override server host")
    serve.add_argument("--port", type=int, help="Override server port")

    search = commands.add_parser("search", help="Run one search and print the merged results")
    search.add_argument("query")
    search.add_argument("--chain-id", type=int, help="Chain to search (defaults to search.default_chain_id)")

    liquidity = commands.add_parser("liquidity", help="Print orderbook liquidity for a token pair")
    liquidity.add_argument("token_a")
    liquidity.add_argument("token_b")
    liquidity.add_argument("--decimals", type=int, default=6, help="Decimals used to render amounts")
    return parser


async def _run_search(query: str, chain_id: int) -> dict:
    orchestrator = SearchOrchestrator(chain_id)
    try:
        session = await orchestrator.search(query)
    finally:
        await orchestrator.aclose()
    return {
        "query": query,
        "chainId": chain_id,
        "error": session.error,
        "results": [result.to_payload() for result in session.results],
    }


async def _run_liquidity(token_a: str, token_b: str, decimals: int) -> Optional[dict]:
    pair = await OrderbookClient().fetch_pair_liquidity(token_a, token_b)
    if pair is None:
        return None
    payload = pair.to_payload()
    payload["formatted"] = {
        "liquidityAtoB": format_liquidity(pair.liquidity_a_to_b.total_liquidity, decimals),
        "liquidityBtoA": format_liquidity(pair.liquidity_b_to_a.total_liquidity, decimals),
    }
    return payload


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    config = get_app_config()
    bootstrap_observability(config=config)

    if args.command == "serve":
        host = args.host or config.server.host
        port = args.port or config.server.port
        uvicorn.run(create_app(config=config), host=host, port=port, log_level=config.monitoring.log_level.lower())
        return 0

    if args.command == "search":
        chain_id = args.chain_id if args.chain_id is not None else config.search.default_chain_id
        print(json.dumps(asyncio.run(_run_search(args.query, chain_id)), indent=2))
        return 0

    payload = asyncio.run(_run_liquidity(args.token_a, args.token_b, args.decimals))
    if payload is None:
        print("No liquidity data available", file=sys.stderr)
        return 1
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
