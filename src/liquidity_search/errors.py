"""Exception hierarchy shared by the ingestion, aggregation and search layers."""

from __future__ import annotations

from typing import Iterable, Optional


class LiquiditySearchError(Exception):
    """Base class for every error raised by this package."""

    status_code = 500


class ConfigurationError(LiquiditySearchError):
    """A required credential or endpoint is missing; not recoverable per request."""


class MalformedRequestError(LiquiditySearchError):
    """Client input has the wrong shape."""

    status_code = 400


class UnsupportedChainError(LiquiditySearchError):
    """The chain has no indexer endpoint configured."""

    status_code = 400

    def __init__(self, chain_id: object, supported: Iterable[str] = ()) -> None:
        self.chain_id = chain_id
        self.supported = list(supported)
        message = f"No subgraph configured for chainId={chain_id}"
        if self.supported:
            message += f". Supported chains: {', '.join(self.supported)}"
        super().__init__(message)


class UpstreamQueryError(LiquiditySearchError):
    """The indexer could not be reached or answered with errors."""

    status_code = 502

    def __init__(self, chain_id: int, message: str, query: Optional[str] = None) -> None:
        self.chain_id = chain_id
        self.query = query
        text = f"Failed to query subgraph for chain {chain_id}: {message}"
        if query:
            text += f". Query: {query}..."
        super().__init__(text)


class PartialEnrichmentFailure(LiquiditySearchError):
    """Pool enrichment failed for one token of a batch."""

    def __init__(self, token_address: str, cause: BaseException) -> None:
        self.token_address = token_address
        self.cause = cause
        super().__init__(f"Pool enrichment failed for token {token_address}: {cause}")


__all__ = [
    "ConfigurationError",
    "LiquiditySearchError",
    "MalformedRequestError",
    "PartialEnrichmentFailure",
    "UnsupportedChainError",
    "UpstreamQueryError",
]
