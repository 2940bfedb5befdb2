"""Search surface: result model, session reducer and the orchestrator."""

from .actions import ActionSink, BrowserActionSink
from .orchestrator import SearchOrchestrator, is_address, match_local_tokens
from .results import ResultKind, ResultSource, SearchResult
from .session import SearchSession, reduce
from .sources import AggregatorLiquiditySource, HttpLiquiditySource, LiquiditySource

__all__ = [
    "ActionSink",
    "AggregatorLiquiditySource",
    "BrowserActionSink",
    "HttpLiquiditySource",
    "LiquiditySource",
    "ResultKind",
    "ResultSource",
    "SearchOrchestrator",
    "SearchResult",
    "SearchSession",
    "is_address",
    "match_local_tokens",
    "reduce",
]
