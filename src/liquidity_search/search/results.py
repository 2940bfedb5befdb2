"""Unified result model rendered by the search surface."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union

from ..datalake.schemas import Pool
from .formatting import describe_pool


class ResultKind(str, Enum):
    TOKEN = "token"
    ADDRESS = "address"
    TRANSACTION = "transaction"
    SUGGESTION = "suggestion"
    COMMAND = "command"


class ResultSource(str, Enum):
    REMOTE = "remote"
    LOCAL = "local"


@dataclass(frozen=True, slots=True)
class TokenResultMetadata:
    address: str
    symbol: str
    name: str
    chain_id: int
    source: ResultSource
    decimals: Optional[int] = None
    tvl_usd: Optional[float] = None
    volume_usd: Optional[float] = None
    pools: Tuple[Pool, ...] = ()
    top_pool: Optional[Pool] = None
    ticker: Optional[str] = None
    is_tokenized_stock: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "symbol": self.symbol,
            "name": self.name,
            "chainId": self.chain_id,
            "source": self.source.value,
            "decimals": self.decimals,
            "tvlUSD": self.tvl_usd,
            "volumeUSD": self.volume_usd,
            "poolCount": len(self.pools),
            "topPool": describe_pool(self.top_pool),
            "ticker": self.ticker,
            "isTokenizedStock": self.is_tokenized_stock,
        }


@dataclass(frozen=True, slots=True)
class AddressResultMetadata:
    address: str
    explorer_url: str

    def to_payload(self) -> Dict[str, Any]:
        return {"address": self.address, "explorerUrl": self.explorer_url}


@dataclass(frozen=True, slots=True)
class CommandResultMetadata:
    command: str
    target: str

    def to_payload(self) -> Dict[str, Any]:
        return {"command": self.command, "target": self.target}


ResultMetadata = Union[TokenResultMetadata, AddressResultMetadata, CommandResultMetadata]


def _noop() -> None:
    return None


@dataclass(frozen=True, slots=True)
class SearchResult:
    """One actionable row; ``id`` carries a source prefix so rows from different sources never collide."""

    id: str
    kind: ResultKind
    title: str
    subtitle: Optional[str] = None
    icon: Optional[str] = None
    metadata: Optional[ResultMetadata] = None
    score: Optional[float] = None
    action: Callable[[], None] = field(default=_noop, compare=False, repr=False)

    @property
    def address(self) -> Optional[str]:
        if isinstance(self.metadata, (TokenResultMetadata, AddressResultMetadata)):
            return self.metadata.address
        return None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "title": self.title,
            "subtitle": self.subtitle,
            "icon": self.icon,
            "score": self.score,
            "metadata": self.metadata.to_payload() if self.metadata is not None else None,
        }


__all__ = [
    "AddressResultMetadata",
    "CommandResultMetadata",
    "ResultKind",
    "ResultMetadata",
    "ResultSource",
    "SearchResult",
    "TokenResultMetadata",
]
