from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests

from liquidity_search.config import settings
from liquidity_search.monitoring.metrics import METRICS


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv("APP_CONFIG_FILE", str(tmp_path / "missing.toml"))
    monkeypatch.delenv("SEARCH_PROFILE", raising=False)
    monkeypatch.delenv("THE_GRAPH_API_KEY", raising=False)
    monkeypatch.delenv("SUBGRAPH__API_KEY", raising=False)
    monkeypatch.chdir(tmp_path)
    settings.get_app_config.cache_clear()
    METRICS.reset()
    yield
    settings.get_app_config.cache_clear()
    METRICS.reset()


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ""
        self.reason = "OK" if status_code < 400 else "Error"

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} {self.reason}")


class FakeSession:
    """Replays queued responses (or raises queued exceptions) and records calls."""

    def __init__(self, *responses: Any) -> None:
        self._responses: List[Any] = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def _next(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if not self._responses:
            raise AssertionError(f"unexpected {method} {url}")
        outcome = self._responses.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", url, **kwargs)
