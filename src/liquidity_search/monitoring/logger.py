"""Logging for the search pipeline.

Records go to stderr (stdout carries CLI output) either as one JSON object
per line or as plain text. Every record is stamped with the active search
context: a correlation id per HTTP request or orchestrated search, and the
chain being searched when one is known.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from ..config.settings import MonitoringConfig, get_app_config

SERVICE_NAME = "liquidity-search"
NO_CORRELATION = "-"
TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(correlation_id)s] %(name)s: %(message)s"

# Chatty transport loggers are capped at WARNING unless the root level is stricter.
_NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "uvicorn.access")

_correlation_id: ContextVar[str] = ContextVar("correlation_id", default=NO_CORRELATION)
_chain_id: ContextVar[Optional[int]] = ContextVar("chain_id", default=None)
_configured = False

_RESERVED = frozenset(logging.makeLogRecord({}).__dict__) | {"correlation_id", "chain_id", "message", "asctime"}


class _SearchContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get()
        record.chain_id = _chain_id.get()
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per record; ``extra=`` fields land under ``context``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION),
        }
        chain_id = getattr(record, "chain_id", None)
        if chain_id is not None:
            entry["chain_id"] = chain_id
        context = {
            key: value for key, value in record.__dict__.items() if key not in _RESERVED and not key.startswith("_")
        }
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _build_handler(log_format: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    if log_format == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(StructuredFormatter())
    handler.addFilter(_SearchContextFilter())
    return handler


def configure_logging(config: Optional[MonitoringConfig] = None, *, force: bool = False) -> None:
    """Install the package handler on the root logger once (again with ``force``)."""

    global _configured
    if _configured and not force:
        return
    cfg = config or get_app_config().monitoring
    level = logging.getLevelName(cfg.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_build_handler(cfg.log_format))
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    logging.captureWarnings(True)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


def new_correlation_id() -> str:
    return uuid.uuid4().hex[:12]


def current_correlation_id() -> str:
    return _correlation_id.get()


def current_chain_id() -> Optional[int]:
    return _chain_id.get()


@contextmanager
def search_context(*, correlation_id: Optional[str] = None, chain_id: Optional[int] = None) -> Iterator[str]:
    """Bind a correlation id (fresh when omitted) and optionally a chain for the enclosed block."""

    cid = correlation_id or new_correlation_id()
    cid_token = _correlation_id.set(cid)
    chain_token = _chain_id.set(chain_id) if chain_id is not None else None
    try:
        yield cid
    finally:
        if chain_token is not None:
            _chain_id.reset(chain_token)
        _correlation_id.reset(cid_token)


@contextmanager
def correlation_scope(correlation_id: Optional[str]) -> Iterator[str]:
    with search_context(correlation_id=correlation_id) as cid:
        yield cid


__all__ = [
    "StructuredFormatter",
    "configure_logging",
    "correlation_scope",
    "current_chain_id",
    "current_correlation_id",
    "get_logger",
    "new_correlation_id",
    "search_context",
]
