"""Per-chain Uniswap v3 subgraph deployments on The Graph network."""

from __future__ import annotations

from enum import IntEnum
from typing import Dict, List, Optional

from ..config.settings import SubgraphConfig, get_app_config
from ..errors import ConfigurationError, UnsupportedChainError


class ChainId(IntEnum):
    """Chains known to the search surface."""

    ETHEREUM = 1
    OPTIMISM = 10
    BSC = 56
    POLYGON = 137
    ARBITRUM = 42161
    AVALANCHE = 43114
    BASE = 8453
    CELO = 42220
    BLAST = 81457
    SEPOLIA = 11155111
    ARBITRUM_SEPOLIA = 421614


MAINNET_CHAIN_ID = int(ChainId.ETHEREUM)

# Deployment ids from the Uniswap subgraph overview; testnets have no public deployment.
UNISWAP_V3_SUBGRAPH_IDS: Dict[ChainId, str] = {
    ChainId.ETHEREUM: "5zvR82QoaXYFyDEKLZ9t6v9adgnptxYpKpSbxtgVENFV",
    ChainId.OPTIMISM: "Cghf4LfVqPiFw6fp6Y5X5Ubc8UpmUhSfJL82zwiBFLaj",
    ChainId.BSC: "F85MNzUGYqgSHSHRGgeVMNsdnW1KtZSVgFULumXRZTw2",
    ChainId.POLYGON: "3hCPRGf4z88VC5rsBKU5AA9FBBq5nF3jbKJG7VZCbhjm",
    ChainId.ARBITRUM: "3V7ZY6muhxaQL5qvntX1CFXJ32W7BxXZTGTwmpH5J4t3",
    ChainId.AVALANCHE: "GVH9h9KZ9CqheUEL93qMbq7QwgoBu32QXQDPR6bev4Eo",
    ChainId.BASE: "43Hwfi3dJSoGpyas9VwNoDAv55yjgGrPpNSmbQZArzMG",
    ChainId.CELO: "ESdrTJ3twMwWVoQ1hUE2u7PugEHX3QkenudD6aXCkDQ4",
    ChainId.BLAST: "2LHovKznvo8YmKC9ZprPjsYAZDCc4K5q4AYz8s3cnQn1",
    ChainId.SEPOLIA: "",
    ChainId.ARBITRUM_SEPOLIA: "",
}


def is_chain_supported(chain_id: object) -> bool:
    """Return True when ``chain_id`` has a subgraph deployment."""

    if isinstance(chain_id, bool) or not isinstance(chain_id, int):
        return False
    try:
        chain = ChainId(chain_id)
    except ValueError:
        return False
    return bool(UNISWAP_V3_SUBGRAPH_IDS.get(chain))


def supported_chain_names() -> List[str]:
    return [chain.name for chain, subgraph_id in UNISWAP_V3_SUBGRAPH_IDS.items() if subgraph_id]


def _graph_api_key(config: SubgraphConfig) -> str:
    if not config.api_key:
        raise ConfigurationError(
            "THE_GRAPH_API_KEY (or SUBGRAPH__API_KEY) is required for subgraph queries. "
            "Create one at https://thegraph.com/studio/apikeys/"
        )
    return config.api_key


def get_subgraph_endpoint(chain_id: int, config: Optional[SubgraphConfig] = None) -> str:
    """Build the gateway URL for ``chain_id``.

    Unsupported chains fail before the credential is looked up, so a client
    error is never masked by a configuration error.
    """

    if not is_chain_supported(chain_id):
        raise UnsupportedChainError(chain_id, supported_chain_names())
    cfg = config or get_app_config().subgraph
    api_key = _graph_api_key(cfg)
    subgraph_id = UNISWAP_V3_SUBGRAPH_IDS[ChainId(chain_id)]
    gateway = str(cfg.gateway_url).rstrip("/")
    return f"{gateway}/{api_key}/subgraphs/id/{subgraph_id}"


__all__ = [
    "ChainId",
    "MAINNET_CHAIN_ID",
    "UNISWAP_V3_SUBGRAPH_IDS",
    "get_subgraph_endpoint",
    "is_chain_supported",
    "supported_chain_names",
]
