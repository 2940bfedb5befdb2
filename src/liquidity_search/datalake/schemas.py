"""Data models shared by the ingestion, aggregation and orderbook layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

DEFAULT_DECIMALS = 18


def _decimals(payload: Dict[str, Any]) -> int:
    value = payload.get("decimals")
    return DEFAULT_DECIMALS if value is None else int(value)


@dataclass(frozen=True, slots=True)
class Token:
    """A token as reported by the indexer; identity is ``(chain_id, address)``."""

    address: str
    symbol: str
    name: str
    decimals: int = 18
    tvl_usd: float = 0.0
    volume_usd: float = 0.0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
            "tvlUSD": self.tvl_usd,
            "volumeUSD": self.volume_usd,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Token":
        return cls(
            address=str(payload.get("address") or "").lower(),
            symbol=str(payload.get("symbol") or ""),
            name=str(payload.get("name") or ""),
            decimals=_decimals(payload),
            tvl_usd=float(payload.get("tvlUSD") or 0.0),
            volume_usd=float(payload.get("volumeUSD") or 0.0),
        )


@dataclass(frozen=True, slots=True)
class PoolToken:
    """One side of a pool."""

    address: str
    symbol: str
    name: str
    decimals: int = 18

    def to_payload(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "PoolToken":
        return cls(
            address=str(payload.get("address") or "").lower(),
            symbol=str(payload.get("symbol") or ""),
            name=str(payload.get("name") or ""),
            decimals=_decimals(payload),
        )


@dataclass(frozen=True, slots=True)
class Pool:
    """A concentrated-liquidity pool; token0/token1 keep the indexer's ordering."""

    pool_address: str
    fee_tier_bps: int
    tvl_usd: float
    volume_usd: float
    token0: PoolToken
    token1: PoolToken
    chain_id: Optional[int] = None
    liquidity: str = "0"
    sqrt_price: str = "0"
    tick: Optional[int] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "poolAddress": self.pool_address,
            "feeTierBps": self.fee_tier_bps,
            "tvlUSD": self.tvl_usd,
            "volumeUSD": self.volume_usd,
            "token0": self.token0.to_payload(),
            "token1": self.token1.to_payload(),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Pool":
        return cls(
            pool_address=str(payload.get("poolAddress") or "").lower(),
            fee_tier_bps=int(payload.get("feeTierBps") or 0),
            tvl_usd=float(payload.get("tvlUSD") or 0.0),
            volume_usd=float(payload.get("volumeUSD") or 0.0),
            token0=PoolToken.from_payload(payload.get("token0") or {}),
            token1=PoolToken.from_payload(payload.get("token1") or {}),
        )


@dataclass(frozen=True, slots=True)
class TokenWithPools:
    """Token enriched with its most liquid pools."""

    token: Token
    pools: tuple[Pool, ...] = ()

    @property
    def address(self) -> str:
        return self.token.address

    def top_pool(self) -> Optional[Pool]:
        if not self.pools:
            return None
        return max(self.pools, key=lambda pool: pool.tvl_usd)

    def to_payload(self) -> Dict[str, Any]:
        payload = self.token.to_payload()
        payload["pools"] = [pool.to_payload() for pool in self.pools]
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TokenWithPools":
        pools = payload.get("pools") or []
        return cls(
            token=Token.from_payload(payload),
            pools=tuple(Pool.from_payload(item) for item in pools if isinstance(item, dict)),
        )


@dataclass(slots=True)
class TokenSearchResult:
    chain_id: int
    tokens: List[Token] = field(default_factory=list)


@dataclass(slots=True)
class TokenPoolsResult:
    chain_id: int
    token_address: str
    pools: List[Pool] = field(default_factory=list)


@dataclass(slots=True)
class LiquidityResponse:
    """Payload of the aggregation endpoint."""

    chain_id: int
    tokens: List[TokenWithPools] = field(default_factory=list)
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "chainId": self.chain_id,
            "tokens": [token.to_payload() for token in self.tokens],
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], *, chain_id: int) -> "LiquidityResponse":
        raw_chain = payload.get("chainId")
        tokens = payload.get("tokens") or []
        return cls(
            chain_id=raw_chain if isinstance(raw_chain, int) else chain_id,
            tokens=[TokenWithPools.from_payload(item) for item in tokens if isinstance(item, dict)],
            error=payload.get("error"),
        )


@dataclass(frozen=True, slots=True)
class RegistryToken:
    """Entry of the static per-chain token registry."""

    address: str
    symbol: str
    name: str
    decimals: int = 18
    logo_uri: Optional[str] = None
    ticker: Optional[str] = None
    is_tokenized_stock: bool = False


@dataclass(frozen=True, slots=True)
class LiquidityData:
    """Summed sell-side liquidity for one direction of a pair."""

    total_liquidity: int
    order_count: int
    direction: str = "sell"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "totalLiquidity": str(self.total_liquidity),
            "orderCount": self.order_count,
            "direction": self.direction,
        }


@dataclass(frozen=True, slots=True)
class PairLiquidity:
    """Two-sided orderbook liquidity snapshot; replaced wholesale on every poll."""

    token_a: str
    token_b: str
    liquidity_a_to_b: LiquidityData
    liquidity_b_to_a: LiquidityData
    timestamp: int

    @property
    def has_liquidity(self) -> bool:
        return self.liquidity_a_to_b.total_liquidity > 0 or self.liquidity_b_to_a.total_liquidity > 0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "tokenA": self.token_a,
            "tokenB": self.token_b,
            "liquidityAtoB": self.liquidity_a_to_b.to_payload(),
            "liquidityBtoA": self.liquidity_b_to_a.to_payload(),
            "timestamp": self.timestamp,
        }


def with_pools(token: Token, pools: List[Pool]) -> TokenWithPools:
    return TokenWithPools(token=token, pools=tuple(pools))


__all__ = [
    "LiquidityData",
    "LiquidityResponse",
    "PairLiquidity",
    "Pool",
    "PoolToken",
    "RegistryToken",
    "Token",
    "TokenPoolsResult",
    "TokenSearchResult",
    "TokenWithPools",
    "with_pools",
]
