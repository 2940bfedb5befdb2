"""Debounced multi-source search with stale-response suppression."""

from __future__ import annotations

import asyncio
import re
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from ..config.settings import SearchConfig, get_app_config
from ..datalake.schemas import RegistryToken, TokenWithPools
from ..ingestion.subgraphs import MAINNET_CHAIN_ID, is_chain_supported
from ..ingestion.token_registry import TokenRegistry
from ..monitoring.logger import get_logger, search_context
from ..monitoring.metrics import METRICS
from .actions import ActionSink, BrowserActionSink
from .formatting import shorten_address
from .results import (
    AddressResultMetadata,
    CommandResultMetadata,
    ResultKind,
    ResultSource,
    SearchResult,
    TokenResultMetadata,
)
from .session import (
    Dismissed,
    InputChanged,
    Opened,
    SearchFailed,
    SearchResolved,
    SearchSession,
    SearchStarted,
    SelectionMoved,
    SessionEvent,
    is_current,
    reduce,
)
from .sources import AggregatorLiquiditySource, LiquiditySource

ADDRESS_PATTERN = re.compile(r"0x[a-fA-F0-9]{40}")


def is_address(text: str) -> bool:
    return ADDRESS_PATTERN.fullmatch(text) is not None


def match_local_tokens(
    tokens: Iterable[RegistryToken],
    query: str,
    *,
    limit: int,
    exclude: Iterable[str] = (),
) -> List[RegistryToken]:
    """Case-insensitive substring match, capped first and deduplicated second."""

    needle = query.strip().lower()
    if not needle or limit <= 0:
        return []
    matches: List[RegistryToken] = []
    for token in tokens:
        haystack = (token.symbol, token.name, token.address, token.ticker or "")
        if any(needle in field.lower() for field in haystack):
            matches.append(token)
            if len(matches) >= limit:
                break
    excluded = {address.lower() for address in exclude}
    return [token for token in matches if token.address.lower() not in excluded]


class SearchOrchestrator:
    """Owns one search session and drives it from input, timers and responses.

    All methods must run on the event loop thread. ``on_input`` schedules the
    debounced search; ``search`` runs one immediately. Results of a search are
    applied only when no newer input or search has happened since it started.
    """

    def __init__(
        self,
        chain_id: int,
        *,
        source: Optional[LiquiditySource] = None,
        registry: Optional[TokenRegistry] = None,
        actions: Optional[ActionSink] = None,
        config: Optional[SearchConfig] = None,
        on_change: Optional[Callable[[SearchSession], None]] = None,
    ) -> None:
        self._chain_id = chain_id
        self._config = config or get_app_config().search
        self._source = source or AggregatorLiquiditySource()
        self._registry = registry or TokenRegistry()
        self._actions = actions or BrowserActionSink()
        self._on_change = on_change
        self._session = SearchSession()
        self._debounce_task: Optional[asyncio.Task] = None
        self._running: Set[asyncio.Task] = set()
        self._logger = get_logger(__name__)

    @property
    def session(self) -> SearchSession:
        return self._session

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def results(self) -> Tuple[SearchResult, ...]:
        return self._session.results

    def dispatch(self, event: SessionEvent) -> SearchSession:
        self._session = reduce(self._session, event)
        if self._on_change is not None:
            self._on_change(self._session)
        return self._session

    # -- input and timers -------------------------------------------------

    def open(self) -> None:
        self.dispatch(Opened())

    def on_input(self, text: str) -> None:
        """Record a keystroke and restart the debounce window."""

        self._cancel_debounce()
        self.dispatch(InputChanged(text))
        self._debounce_task = asyncio.get_running_loop().create_task(self._debounced(text))

    def set_chain(self, chain_id: int) -> None:
        if chain_id == self._chain_id:
            return
        self._chain_id = chain_id
        if self._session.is_open:
            self.on_input(self._session.raw_query)

    async def _debounced(self, text: str) -> None:
        await asyncio.sleep(self._config.debounce_seconds)
        # From here on newer input only supersedes the search; aclose still cancels it.
        task = asyncio.current_task()
        self._debounce_task = None
        if task is not None:
            self._running.add(task)
            task.add_done_callback(self._running.discard)
        await self.search(text)

    def _cancel_debounce(self) -> None:
        task, self._debounce_task = self._debounce_task, None
        if task is not None and not task.done():
            task.cancel()

    async def aclose(self) -> None:
        """Cancel the pending debounce and any debounced search still in flight."""

        pending = [task for task in (self._debounce_task, *self._running) if task is not None and not task.done()]
        self._debounce_task = None
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # -- search -----------------------------------------------------------

    async def search(self, text: str) -> SearchSession:
        generation = self._session.generation + 1
        self.dispatch(SearchStarted(generation))
        METRICS.increment("orchestrator.searches")
        with search_context(chain_id=self._chain_id):
            try:
                results, warning = await self.perform_search(text)
            except Exception as exc:  # noqa: BLE001 - the surface shows the message instead
                self._logger.exception("Search failed for %r", text)
                outcome: SessionEvent = SearchFailed(generation, str(exc) or "Search failed")
            else:
                outcome = SearchResolved(generation, results, warning)
        if not is_current(self._session, generation):
            METRICS.increment("orchestrator.stale_discards")
            self._logger.debug("Discarding stale results for %r", text)
            return self._session
        return self.dispatch(outcome)

    async def perform_search(self, text: str) -> Tuple[List[SearchResult], Optional[str]]:
        """Build the merged result list for ``text`` and an optional warning."""

        query = text.strip()
        if is_address(query):
            return [self._address_result(query)], None

        remote: List[SearchResult] = []
        warning: Optional[str] = None
        if query and is_chain_supported(self._chain_id):
            try:
                response = await self._source.fetch(self._chain_id, query)
            except Exception as exc:  # noqa: BLE001 - degrade to local results
                self._logger.warning("Liquidity source failed: %s", exc)
                warning = str(exc) or "Failed to fetch liquidity data"
            else:
                warning = response.error
                remote = [self._remote_token_result(token) for token in response.tokens]

        local = self._local_token_results(query, remote)
        commands = self._command_results() if len(text) < self._config.min_query_length_for_commands else []
        return [*remote, *local, *commands], warning

    # -- selection and commit ---------------------------------------------

    def move_selection(self, delta: int) -> int:
        return self.dispatch(SelectionMoved(delta)).selected_index

    def select_next(self) -> int:
        return self.move_selection(1)

    def select_previous(self) -> int:
        return self.move_selection(-1)

    def commit(self, index: Optional[int] = None) -> bool:
        """Run the highlighted (or given) result's action. Returns False when nothing ran."""

        results = self._session.results
        position = self._session.selected_index if index is None else index
        if not 0 <= position < len(results):
            return False
        results[position].action()
        return True

    def dismiss(self) -> None:
        self._cancel_debounce()
        self.dispatch(Dismissed())

    # -- result builders --------------------------------------------------

    def _closing(self, effect: Callable[[], None]) -> Callable[[], None]:
        def run() -> None:
            try:
                effect()
            except Exception:  # noqa: BLE001 - the session still closes
                self._logger.exception("Search result action failed")
            finally:
                self.dismiss()

        return run

    def explorer_url(self, address: str) -> str:
        if self._chain_id == MAINNET_CHAIN_ID:
            base = self._config.mainnet_explorer_url
        else:
            base = self._config.fallback_explorer_url
        return f"{base.rstrip('/')}/address/{address}"

    def _address_result(self, address: str) -> SearchResult:
        url = self.explorer_url(address)
        return SearchResult(
            id=f"address-{address.lower()}",
            kind=ResultKind.ADDRESS,
            title=shorten_address(address),
            subtitle="View address",
            metadata=AddressResultMetadata(address=address, explorer_url=url),
            action=self._closing(lambda: self._actions.open_url(url)),
        )

    def _remote_token_result(self, entry: TokenWithPools) -> SearchResult:
        token = entry.token
        metadata = TokenResultMetadata(
            address=token.address,
            symbol=token.symbol,
            name=token.name,
            chain_id=self._chain_id,
            source=ResultSource.REMOTE,
            decimals=token.decimals,
            tvl_usd=token.tvl_usd,
            volume_usd=token.volume_usd,
            pools=entry.pools,
            top_pool=entry.top_pool(),
        )
        return SearchResult(
            id=f"remote-token-{token.address.lower()}",
            kind=ResultKind.TOKEN,
            title=token.symbol,
            subtitle=token.name,
            metadata=metadata,
            score=token.tvl_usd,
            action=self._closing(lambda: self._actions.select_token(metadata)),
        )

    def _local_token_results(self, query: str, remote: Sequence[SearchResult]) -> List[SearchResult]:
        known = [result.address for result in remote if result.address]
        matches = match_local_tokens(
            self._registry.get_tokens_for_chain(self._chain_id),
            query,
            limit=self._config.local_match_limit,
            exclude=known,
        )
        return [self._local_token_result(token) for token in matches]

    def _local_token_result(self, token: RegistryToken) -> SearchResult:
        metadata = TokenResultMetadata(
            address=token.address,
            symbol=token.symbol,
            name=token.name,
            chain_id=self._chain_id,
            source=ResultSource.LOCAL,
            decimals=token.decimals,
            ticker=token.ticker,
            is_tokenized_stock=token.is_tokenized_stock,
        )
        return SearchResult(
            id=f"local-token-{token.address.lower()}",
            kind=ResultKind.TOKEN,
            title=token.symbol,
            subtitle=token.name,
            icon=token.logo_uri,
            metadata=metadata,
            action=self._closing(lambda: self._actions.select_token(metadata)),
        )

    def _command_results(self) -> List[SearchResult]:
        anchor = self._config.swap_anchor
        holdings = self._config.holdings_url
        return [
            SearchResult(
                id="cmd-swap",
                kind=ResultKind.COMMAND,
                title="Swap tokens",
                subtitle="Start a token swap",
                metadata=CommandResultMetadata(command="swap", target=f"#{anchor}"),
                action=self._closing(lambda: self._actions.scroll_to(anchor)),
            ),
            SearchResult(
                id="cmd-holdings",
                kind=ResultKind.COMMAND,
                title="View holdings",
                subtitle="Check your portfolio",
                metadata=CommandResultMetadata(command="holdings", target=holdings),
                action=self._closing(lambda: self._actions.open_url(holdings)),
            ),
        ]


__all__ = ["ADDRESS_PATTERN", "SearchOrchestrator", "is_address", "match_local_tokens"]
