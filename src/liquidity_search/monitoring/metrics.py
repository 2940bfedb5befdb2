"""In-process metrics for the search pipeline with a Prometheus text export.

Every sample belongs to a family (``subgraph.requests``) and an optional
label set (``{"chain_id": 1}``). Dotted family names are rewritten to
Prometheus-safe names on export.
"""

from __future__ import annotations

import math
import re
import threading
import time
from collections import defaultdict, deque
from contextlib import contextmanager
from typing import Deque, Dict, Iterator, List, Mapping, MutableMapping, Optional, Tuple

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_:]")
_QUANTILES = (0.5, 0.9, 0.99)

LabelSet = Tuple[Tuple[str, str], ...]
SeriesKey = Tuple[str, LabelSet]


def prometheus_name(name: str) -> str:
    sanitized = _UNSAFE_CHARS.sub("_", name) or "_"
    if sanitized[0].isdigit():
        sanitized = f"_{sanitized}"
    return sanitized


def _label_set(labels: Optional[Mapping[str, object]]) -> LabelSet:
    if not labels:
        return ()
    return tuple(sorted((str(key), str(value)) for key, value in labels.items()))


def _render_labels(labels: LabelSet, extra: LabelSet = ()) -> str:
    pairs = labels + extra
    if not pairs:
        return ""
    body = ",".join(f'{prometheus_name(key)}="{value}"' for key, value in pairs)
    return "{" + body + "}"


def _series_name(key: SeriesKey) -> str:
    name, labels = key
    return name + _render_labels(labels)


def _quantile(ordered: List[float], q: float) -> float:
    index = max(int(math.ceil(q * len(ordered))) - 1, 0)
    return ordered[min(index, len(ordered) - 1)]


class MetricsRegistry:
    """Counters, gauges and bounded latency samples, safe to update from worker threads."""

    def __init__(self, *, max_samples: int = 1024) -> None:
        self._lock = threading.RLock()
        self._counters: MutableMapping[SeriesKey, float] = defaultdict(float)
        self._gauges: Dict[SeriesKey, float] = {}
        self._samples: MutableMapping[SeriesKey, Deque[float]] = defaultdict(lambda: deque(maxlen=max_samples))

    def increment(self, name: str, amount: float = 1.0, *, labels: Optional[Mapping[str, object]] = None) -> None:
        with self._lock:
            self._counters[(name, _label_set(labels))] += amount

    def get(self, name: str, *, labels: Optional[Mapping[str, object]] = None) -> float:
        """Counter value for one label set, or summed over every label set when ``labels`` is omitted."""

        with self._lock:
            if labels is not None:
                return self._counters.get((name, _label_set(labels)), 0.0)
            return sum(value for (family, _), value in self._counters.items() if family == name)

    def gauge(self, name: str, value: float, *, labels: Optional[Mapping[str, object]] = None) -> None:
        with self._lock:
            self._gauges[(name, _label_set(labels))] = float(value)

    def observe(self, name: str, value: float, *, labels: Optional[Mapping[str, object]] = None) -> None:
        with self._lock:
            self._samples[(name, _label_set(labels))].append(float(value))

    @contextmanager
    def timed(self, name: str, *, labels: Optional[Mapping[str, object]] = None) -> Iterator[None]:
        """Observe ``<name>.latency_ms`` and count ``<name>.calls_total`` for the enclosed block."""

        started = time.perf_counter()
        try:
            yield
        finally:
            self.observe(f"{name}.latency_ms", (time.perf_counter() - started) * 1000.0, labels=labels)
            self.increment(f"{name}.calls_total", labels=labels)

    def snapshot(self) -> Dict[str, Dict[str, object]]:
        with self._lock:
            counters = {_series_name(key): value for key, value in self._counters.items()}
            gauges = {_series_name(key): value for key, value in self._gauges.items()}
            samples = {
                _series_name(key): self._summarize(values) for key, values in self._samples.items() if values
            }
        return {"counters": counters, "gauges": gauges, "histograms": samples}

    def export_prometheus(self) -> str:
        with self._lock:
            counters = sorted(self._counters.items())
            gauges = sorted(self._gauges.items())
            samples = sorted((key, sorted(values)) for key, values in self._samples.items() if values)

        lines: List[str] = []
        declared = set()

        def declare(family: str, kind: str) -> str:
            metric = prometheus_name(family)
            if metric not in declared:
                declared.add(metric)
                lines.append(f"# TYPE {metric} {kind}")
            return metric

        for (family, labels), value in counters:
            metric = declare(family, "counter")
            lines.append(f"{metric}{_render_labels(labels)} {value}")
        for (family, labels), value in gauges:
            metric = declare(family, "gauge")
            lines.append(f"{metric}{_render_labels(labels)} {value}")
        for (family, labels), ordered in samples:
            metric = declare(family, "summary")
            for q in _QUANTILES:
                quantile_labels = _render_labels(labels, (("quantile", str(q)),))
                lines.append(f"{metric}{quantile_labels} {_quantile(ordered, q)}")
            lines.append(f"{metric}_sum{_render_labels(labels)} {sum(ordered)}")
            lines.append(f"{metric}_count{_render_labels(labels)} {len(ordered)}")
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._samples.clear()

    @staticmethod
    def _summarize(values: Deque[float]) -> Dict[str, float]:
        ordered = sorted(values)
        summary = {f"p{int(q * 100)}": _quantile(ordered, q) for q in _QUANTILES}
        summary["count"] = float(len(ordered))
        summary["avg"] = sum(ordered) / len(ordered)
        return summary


METRICS = MetricsRegistry()


__all__ = ["METRICS", "MetricsRegistry", "prometheus_name"]
