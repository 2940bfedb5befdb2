"""Search session state and its transition function."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple, Union

from .results import SearchResult


@dataclass(frozen=True, slots=True)
class SearchSession:
    """State of one search surface.

    ``generation`` only ever grows. Every event that makes in-flight work
    obsolete bumps it, and a resolution is applied only when it carries the
    current generation.
    """

    raw_query: str = ""
    is_open: bool = False
    results: Tuple[SearchResult, ...] = ()
    selected_index: int = 0
    loading: bool = False
    error: Optional[str] = None
    generation: int = 0

    @property
    def selected(self) -> Optional[SearchResult]:
        if not self.results:
            return None
        return self.results[self.selected_index]


@dataclass(frozen=True, slots=True)
class InputChanged:
    text: str


@dataclass(frozen=True, slots=True)
class SearchStarted:
    generation: int


@dataclass(frozen=True, slots=True)
class SearchResolved:
    generation: int
    results: Sequence[SearchResult]
    error: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SearchFailed:
    generation: int
    message: str


@dataclass(frozen=True, slots=True)
class SelectionMoved:
    delta: int


@dataclass(frozen=True, slots=True)
class Opened:
    pass


@dataclass(frozen=True, slots=True)
class Dismissed:
    pass


SessionEvent = Union[
    InputChanged, SearchStarted, SearchResolved, SearchFailed, SelectionMoved, Opened, Dismissed
]


def is_current(session: SearchSession, generation: int) -> bool:
    return generation == session.generation


def reduce(session: SearchSession, event: SessionEvent) -> SearchSession:
    if isinstance(event, InputChanged):
        return replace(
            session,
            raw_query=event.text,
            is_open=True,
            loading=False,
            generation=session.generation + 1,
        )
    if isinstance(event, SearchStarted):
        if event.generation < session.generation:
            return session
        return replace(session, generation=event.generation, loading=True, error=None)
    if isinstance(event, SearchResolved):
        if not is_current(session, event.generation):
            return session
        return replace(
            session,
            results=tuple(event.results),
            selected_index=0,
            loading=False,
            error=event.error,
        )
    if isinstance(event, SearchFailed):
        if not is_current(session, event.generation):
            return session
        return replace(session, results=(), selected_index=0, loading=False, error=event.message)
    if isinstance(event, SelectionMoved):
        if not session.results:
            return session
        index = (session.selected_index + event.delta) % len(session.results)
        return replace(session, selected_index=index)
    if isinstance(event, Opened):
        return replace(session, is_open=True)
    if isinstance(event, Dismissed):
        return SearchSession(generation=session.generation + 1)
    raise TypeError(f"Unknown session event: {event!r}")


__all__ = [
    "Dismissed",
    "InputChanged",
    "Opened",
    "SearchFailed",
    "SearchResolved",
    "SearchSession",
    "SearchStarted",
    "SelectionMoved",
    "SessionEvent",
    "is_current",
    "reduce",
]
