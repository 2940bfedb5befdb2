"""Token search via the Uniswap v3 subgraph."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from ..datalake.schemas import Token, TokenSearchResult
from ..errors import ConfigurationError, LiquiditySearchError
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from .subgraph_client import SubgraphClient

MAX_RESULTS = 100

TOKEN_SEARCH_QUERY = """
  query TokenSearch($text: String!, $first: Int!) {
    tokens(
      where: {
        or: [
          { symbol_contains_nocase: $text }
          { name_contains_nocase: $text }
        ]
      }
      orderBy: totalValueLockedUSD
      orderDirection: desc
      first: $first
    ) {
      id
      symbol
      name
      decimals
      volumeUSD
      totalValueLockedUSD
    }
  }
"""


def _to_float(value: Any) -> float:
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        return 0.0


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_token(item: Dict[str, Any]) -> Optional[Token]:
    address = str(item.get("id") or "").lower()
    if not address:
        return None
    return Token(
        address=address,
        symbol=str(item.get("symbol") or ""),
        name=str(item.get("name") or ""),
        decimals=_to_int(item.get("decimals"), 18),
        tvl_usd=_to_float(item.get("totalValueLockedUSD")),
        volume_usd=_to_float(item.get("volumeUSD")),
    )


class TokenSearchService:
    """Free-text token lookup ranked by TVL; degrades to empty on upstream failure."""

    def __init__(self, client: Optional[SubgraphClient] = None) -> None:
        self._client = client or SubgraphClient()
        self._logger = get_logger(__name__)

    def search_tokens(self, chain_id: int, text: str, limit: int = 20) -> TokenSearchResult:
        needle = (text or "").strip()
        if not needle:
            return TokenSearchResult(chain_id=chain_id, tokens=[])
        first = min(max(int(limit), 1), MAX_RESULTS)
        try:
            data = self._client.execute(chain_id, TOKEN_SEARCH_QUERY, {"text": needle, "first": first})
        except ConfigurationError:
            raise
        except LiquiditySearchError as exc:
            METRICS.increment("token_search.recovered_failures")
            self._logger.warning("Token search failed for chain %s: %s", chain_id, exc)
            return TokenSearchResult(chain_id=chain_id, tokens=[])

        tokens = self._parse_tokens((data or {}).get("tokens") or [])
        tokens.sort(key=lambda token: token.tvl_usd, reverse=True)
        return TokenSearchResult(chain_id=chain_id, tokens=tokens[:first])

    @staticmethod
    def _parse_tokens(items: Iterable[Any]) -> List[Token]:
        tokens: List[Token] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            token = parse_token(item)
            if token is not None:
                tokens.append(token)
        return tokens


__all__ = ["TOKEN_SEARCH_QUERY", "TokenSearchService", "parse_token"]
