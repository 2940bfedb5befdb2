"""Static per-chain token registry used as the local search source."""

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from cachetools import TTLCache

from ..config.settings import RegistryConfig, get_app_config
from ..datalake.schemas import RegistryToken
from ..monitoring.logger import get_logger

_BUNDLED_RESOURCE = "tokens.json"


def _parse_entry(item: Mapping[str, Any]) -> Optional[RegistryToken]:
    address = item.get("address")
    symbol = item.get("symbol")
    if not address or not symbol:
        return None
    try:
        return RegistryToken(
            address=str(address),
            symbol=str(symbol),
            name=str(item.get("name") or symbol),
            decimals=int(item.get("decimals", 18)),
            logo_uri=item.get("logoURI") or item.get("logo_uri"),
            ticker=item.get("ticker"),
            is_tokenized_stock=bool(item.get("isTokenizedStock", item.get("is_tokenized_stock", False))),
        )
    except (TypeError, ValueError):
        return None


def parse_registry(payload: Any) -> Dict[int, List[RegistryToken]]:
    """Turn ``{"<chainId>": [entry, ...]}`` into typed registry rows."""

    registry: Dict[int, List[RegistryToken]] = {}
    if not isinstance(payload, dict):
        return registry
    for raw_chain, items in payload.items():
        try:
            chain_id = int(raw_chain)
        except (TypeError, ValueError):
            continue
        if not isinstance(items, list):
            continue
        entries = [entry for entry in (_parse_entry(item) for item in items if isinstance(item, dict)) if entry]
        registry[chain_id] = entries
    return registry


class TokenRegistry:
    """Serves registry rows for a chain; the backing file is read once per cache window."""

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        *,
        tokens: Optional[Mapping[int, Sequence[RegistryToken]]] = None,
    ) -> None:
        self._config = config or get_app_config().registry
        self._static = {chain: list(entries) for chain, entries in tokens.items()} if tokens is not None else None
        self._cache: TTLCache[str, Dict[int, List[RegistryToken]]] = TTLCache(
            maxsize=1, ttl=max(self._config.cache_ttl_seconds, 1)
        )
        self._logger = get_logger(__name__)

    def _load(self) -> Dict[int, List[RegistryToken]]:
        if self._static is not None:
            return self._static
        if "registry" in self._cache:
            return self._cache["registry"]
        try:
            payload = json.loads(self._read_source())
        except (OSError, ValueError) as exc:
            self._logger.warning("Failed to load token registry: %s", exc)
            payload = {}
        registry = parse_registry(payload)
        self._cache["registry"] = registry
        return registry

    def _read_source(self) -> str:
        path: Optional[Path] = self._config.tokens_file
        if path is not None:
            return Path(path).read_text(encoding="utf-8")
        return resources.files("liquidity_search.data").joinpath(_BUNDLED_RESOURCE).read_text(encoding="utf-8")

    def get_tokens_for_chain(self, chain_id: int) -> List[RegistryToken]:
        return list(self._load().get(chain_id, []))


__all__ = ["TokenRegistry", "parse_registry"]
