from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from liquidity_search.config.settings import RegistryConfig, SearchConfig
from liquidity_search.datalake.schemas import LiquidityResponse, RegistryToken, Token, with_pools
from liquidity_search.ingestion.token_registry import TokenRegistry
from liquidity_search.monitoring.metrics import METRICS
from liquidity_search.search.orchestrator import SearchOrchestrator, is_address, match_local_tokens
from liquidity_search.search.results import ResultKind, ResultSource

USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
USDT = "0xdAC17F958D2ee523a2206206994597C13D831ec7"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
ADDRESS = "0x" + "ab" * 20

REGISTRY_TOKENS = {
    1: [
        RegistryToken(address=USDC, symbol="USDC", name="USD Coin", decimals=6, logo_uri="https://logo/usdc"),
        RegistryToken(address=USDT, symbol="USDT", name="Tether USD", decimals=6),
        RegistryToken(address=WETH, symbol="WETH", name="Wrapped Ether"),
        RegistryToken(
            address="0x" + "11" * 20, symbol="AAPLx", name="Apple xStock", ticker="AAPL", is_tokenized_stock=True
        ),
    ],
    11155111: [RegistryToken(address="0x" + "22" * 20, symbol="USDS", name="Sepolia USD")],
}


class FakeSource:
    def __init__(
        self,
        responses: Optional[Dict[str, LiquidityResponse]] = None,
        gates: Optional[Dict[str, asyncio.Event]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self._responses = responses or {}
        self._gates = gates or {}
        self._error = error
        self.calls: List[tuple] = []

    async def fetch(self, chain_id: int, query: str) -> LiquidityResponse:
        self.calls.append((chain_id, query))
        gate = self._gates.get(query)
        if gate is not None:
            await gate.wait()
        if self._error is not None:
            raise self._error
        return self._responses.get(query) or LiquidityResponse(chain_id=chain_id, tokens=[])


class FakeActions:
    def __init__(self, fail: bool = False) -> None:
        self.opened: List[str] = []
        self.scrolled: List[str] = []
        self.selected: List[str] = []
        self._fail = fail

    def open_url(self, url: str) -> None:
        if self._fail:
            raise RuntimeError("no browser")
        self.opened.append(url)

    def scroll_to(self, anchor: str) -> None:
        self.scrolled.append(anchor)

    def select_token(self, token) -> None:
        self.selected.append(token.symbol)


def remote(chain_id: int, *entries: tuple, error: Optional[str] = None) -> LiquidityResponse:
    tokens = [
        with_pools(Token(address=address.lower(), symbol=symbol, name=symbol, tvl_usd=tvl), [])
        for address, symbol, tvl in entries
    ]
    return LiquidityResponse(chain_id=chain_id, tokens=tokens, error=error)


def make_orchestrator(
    chain_id: int = 1,
    source: Optional[FakeSource] = None,
    actions: Optional[FakeActions] = None,
    **config,
) -> SearchOrchestrator:
    return SearchOrchestrator(
        chain_id,
        source=source or FakeSource(),
        registry=TokenRegistry(RegistryConfig(), tokens=REGISTRY_TOKENS),
        actions=actions or FakeActions(),
        config=SearchConfig(debounce_seconds=0.01, **config),
    )


def ids(orchestrator: SearchOrchestrator) -> List[str]:
    return [result.id for result in orchestrator.results]


def test_address_query_short_circuits_other_sources() -> None:
    source = FakeSource()
    orchestrator = make_orchestrator(source=source)

    session = asyncio.run(orchestrator.search(f"  {ADDRESS} "))

    assert source.calls == []
    assert len(session.results) == 1
    result = session.results[0]
    assert result.kind is ResultKind.ADDRESS
    assert result.id == f"address-{ADDRESS}"
    assert result.title == "0xabab...abab"
    assert result.subtitle == "View address"
    assert result.metadata.explorer_url == f"https://etherscan.io/address/{ADDRESS}"


def test_address_explorer_off_mainnet() -> None:
    orchestrator = make_orchestrator(chain_id=42161)
    session = asyncio.run(orchestrator.search(ADDRESS))
    assert session.results[0].metadata.explorer_url == f"https://explorer.arbitrum.io/address/{ADDRESS}"


def test_remote_then_local_with_dedup() -> None:
    source = FakeSource({"usd": remote(1, (USDC, "USDC", 5_000_000.0))})
    orchestrator = make_orchestrator(source=source)

    session = asyncio.run(orchestrator.search("usd"))

    assert ids(orchestrator) == [f"remote-token-{USDC.lower()}", f"local-token-{USDT.lower()}"]
    remote_result, local_result = session.results
    assert remote_result.metadata.source is ResultSource.REMOTE
    assert remote_result.score == 5_000_000.0
    assert local_result.metadata.source is ResultSource.LOCAL
    assert session.error is None
    assert source.calls == [(1, "usd")]


def test_remote_results_are_not_deduplicated_among_themselves() -> None:
    source = FakeSource({"weth": remote(1, (WETH, "WETH", 2.0), (WETH, "WETH", 1.0))})
    orchestrator = make_orchestrator(source=source)
    asyncio.run(orchestrator.search("weth"))
    assert ids(orchestrator).count(f"remote-token-{WETH.lower()}") == 2


def test_local_match_covers_ticker_and_caps_before_dedup() -> None:
    matches = match_local_tokens(REGISTRY_TOKENS[1], "aapl", limit=5)
    assert [token.symbol for token in matches] == ["AAPLx"]

    capped = match_local_tokens(REGISTRY_TOKENS[1], "us", limit=1, exclude=[USDC.lower()])
    assert capped == []


def test_returned_error_is_a_warning_alongside_results() -> None:
    source = FakeSource({"usdc": remote(1, (USDC, "USDC", 1.0), error="indexer degraded")})
    orchestrator = make_orchestrator(source=source)

    session = asyncio.run(orchestrator.search("usdc"))

    assert session.error == "indexer degraded"
    assert ids(orchestrator) == [f"remote-token-{USDC.lower()}"]


def test_source_exception_keeps_local_results() -> None:
    orchestrator = make_orchestrator(source=FakeSource(error=RuntimeError("connection refused")))

    session = asyncio.run(orchestrator.search("weth"))

    assert session.error == "connection refused"
    assert ids(orchestrator) == [f"local-token-{WETH.lower()}"]
    assert not session.loading


def test_unsupported_chain_skips_remote_but_scans_registry() -> None:
    source = FakeSource()
    orchestrator = make_orchestrator(chain_id=11155111, source=source)

    asyncio.run(orchestrator.search("usd"))

    assert source.calls == []
    assert ids(orchestrator) == [f"local-token-0x{'22' * 20}"]


def test_blank_query_yields_only_commands() -> None:
    source = FakeSource()
    orchestrator = make_orchestrator(source=source)

    session = asyncio.run(orchestrator.search(""))

    assert source.calls == []
    assert ids(orchestrator) == ["cmd-swap", "cmd-holdings"]
    assert session.results[0].title == "Swap tokens"
    assert session.results[1].subtitle == "Check your portfolio"


def test_short_query_appends_commands_after_tokens() -> None:
    orchestrator = make_orchestrator()
    asyncio.run(orchestrator.search("w"))
    assert ids(orchestrator) == [f"local-token-{WETH.lower()}", "cmd-swap", "cmd-holdings"]


def test_debounce_runs_only_the_last_input() -> None:
    source = FakeSource()

    async def scenario() -> SearchOrchestrator:
        orchestrator = make_orchestrator(source=source)
        for text in ("u", "us", "usd"):
            orchestrator.on_input(text)
            await asyncio.sleep(0)
        assert orchestrator.session.raw_query == "usd"
        await asyncio.sleep(0.1)
        await orchestrator.aclose()
        return orchestrator

    orchestrator = asyncio.run(scenario())
    assert source.calls == [(1, "usd")]
    assert orchestrator.session.is_open
    assert f"local-token-{USDC.lower()}" in ids(orchestrator)


def test_stale_response_is_discarded() -> None:
    async def scenario():
        gate = asyncio.Event()
        source = FakeSource(
            {"usdc": remote(1, (USDC, "USDC", 1.0)), "weth": remote(1, (WETH, "WETH", 1.0))},
            gates={"usdc": gate},
        )
        orchestrator = make_orchestrator(source=source)
        first = asyncio.create_task(orchestrator.search("usdc"))
        await asyncio.sleep(0)
        await orchestrator.search("weth")
        gate.set()
        await first
        return orchestrator

    orchestrator = asyncio.run(scenario())
    assert ids(orchestrator) == [f"remote-token-{WETH.lower()}"]
    assert not orchestrator.session.loading
    assert METRICS.get("orchestrator.stale_discards") == 1


def test_input_during_search_supersedes_it() -> None:
    async def scenario():
        gate = asyncio.Event()
        source = FakeSource({"usdc": remote(1, (USDC, "USDC", 1.0))}, gates={"usdc": gate})
        orchestrator = make_orchestrator(source=source)
        pending = asyncio.create_task(orchestrator.search("usdc"))
        await asyncio.sleep(0)
        assert orchestrator.session.loading
        orchestrator.on_input("x")
        assert not orchestrator.session.loading
        gate.set()
        await pending
        await orchestrator.aclose()
        return orchestrator

    orchestrator = asyncio.run(scenario())
    assert f"remote-token-{USDC.lower()}" not in ids(orchestrator)


def test_selection_wraps_and_commit_dismisses() -> None:
    actions = FakeActions()
    orchestrator = make_orchestrator(actions=actions)
    asyncio.run(orchestrator.search(""))

    assert orchestrator.move_selection(-1) == 1
    assert orchestrator.commit() is True
    assert actions.opened == ["https://holdings.vaulto.ai"]
    assert orchestrator.session.results == ()
    assert orchestrator.session.raw_query == ""
    assert not orchestrator.session.is_open


def test_token_commit_selects_and_swap_scrolls() -> None:
    actions = FakeActions()
    orchestrator = make_orchestrator(actions=actions)
    asyncio.run(orchestrator.search("w"))

    assert orchestrator.commit(1) is True
    assert actions.scrolled == ["swap-widget"]
    asyncio.run(orchestrator.search("w"))
    assert orchestrator.commit(0) is True
    assert actions.selected == ["WETH"]


def test_failing_action_still_dismisses() -> None:
    orchestrator = make_orchestrator(actions=FakeActions(fail=True))
    asyncio.run(orchestrator.search(ADDRESS))
    assert orchestrator.commit() is True
    assert orchestrator.session.results == ()


def test_commit_without_results_is_a_no_op() -> None:
    assert make_orchestrator().commit() is False


def test_dismiss_cancels_pending_debounce() -> None:
    source = FakeSource()

    async def scenario() -> None:
        orchestrator = make_orchestrator(source=source)
        orchestrator.on_input("usd")
        orchestrator.dismiss()
        await asyncio.sleep(0.05)

    asyncio.run(scenario())
    assert source.calls == []


def test_aclose_cancels_a_debounced_search_in_flight() -> None:
    gate = asyncio.Event()
    source = FakeSource({"usdc": remote(1, (USDC, "USDC", 1.0))}, gates={"usdc": gate})

    async def scenario() -> SearchOrchestrator:
        orchestrator = make_orchestrator(source=source)
        orchestrator.on_input("usdc")
        await asyncio.sleep(0.05)
        assert source.calls == [(1, "usdc")]
        assert orchestrator.session.loading
        await orchestrator.aclose()
        others = [task for task in asyncio.all_tasks() if task is not asyncio.current_task()]
        assert others == []
        gate.set()
        await asyncio.sleep(0)
        return orchestrator

    orchestrator = asyncio.run(scenario())
    assert f"remote-token-{USDC.lower()}" not in ids(orchestrator)


def test_address_detection_is_exact() -> None:
    assert is_address(ADDRESS)
    assert is_address(USDC)
    assert not is_address(ADDRESS + "\n")
    assert not is_address(" " + ADDRESS)
    assert not is_address(ADDRESS[:-1])
    assert not is_address("0x" + "zz" * 20)
