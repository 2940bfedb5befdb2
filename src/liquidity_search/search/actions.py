"""Side effects reachable from a search result."""

from __future__ import annotations

import webbrowser
from typing import Protocol

from ..monitoring.logger import get_logger
from .results import TokenResultMetadata


class ActionSink(Protocol):
    def open_url(self, url: str) -> None:
        ...

    def scroll_to(self, anchor: str) -> None:
        ...

    def select_token(self, token: TokenResultMetadata) -> None:
        ...


class BrowserActionSink:
    """Opens external links in the system browser and logs in-page effects."""

    def __init__(self) -> None:
        self._logger = get_logger(__name__)

    def open_url(self, url: str) -> None:
        self._logger.info("Opening %s", url)
        webbrowser.open(url, new=2)

    def scroll_to(self, anchor: str) -> None:
        self._logger.info("Scroll to #%s", anchor)

    def select_token(self, token: TokenResultMetadata) -> None:
        self._logger.info(
            "Selected token %s", token.symbol, extra={"address": token.address, "chain_id": token.chain_id}
        )


__all__ = ["ActionSink", "BrowserActionSink"]
