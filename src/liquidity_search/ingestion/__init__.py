"""Clients for the indexer, the local registry and their parsing helpers."""

from .pools import PoolService
from .subgraph_client import SubgraphClient
from .subgraphs import ChainId, get_subgraph_endpoint, is_chain_supported
from .token_registry import TokenRegistry
from .token_search import TokenSearchService

__all__ = [
    "ChainId",
    "PoolService",
    "SubgraphClient",
    "TokenRegistry",
    "TokenSearchService",
    "get_subgraph_endpoint",
    "is_chain_supported",
]
