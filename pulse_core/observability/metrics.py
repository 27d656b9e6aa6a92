"""In-process metrics for provider calls and alert delivery.

Counters and histograms keyed by name plus sorted labels, e.g.
``provider_calls_total{operation=analyze,outcome=error,provider=groq}``.
"""

import threading
from typing import Any, Optional


PROVIDER_CALLS = "provider_calls_total"
PROVIDER_LATENCY_MS = "provider_latency_ms"
ALERTS_FIRED = "alerts_fired_total"
ALERT_DELIVERIES = "alert_deliveries_total"


class MetricsCollector:
    """Thread-safe metrics collector holding values in memory."""

    def __init__(self):
        self._lock = threading.RLock()
        self._counters: dict[str, float] = {}
        self._histograms: dict[str, list[float]] = {}

    @staticmethod
    def _make_key(name: str, labels: Optional[dict[str, str]] = None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"

    def increment(
        self,
        name: str,
        value: float = 1.0,
        labels: Optional[dict[str, str]] = None,
    ) -> None:
        """Add ``value`` to a counter."""
        key = self._make_key(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + value

    def record_histogram(
        self,
        name: str,
        value: float,
        labels: Optional[dict[str, str]] = None,
    ) -> None:
        """Append an observation to a histogram."""
        key = self._make_key(name, labels)
        with self._lock:
            self._histograms.setdefault(key, []).append(value)

    def get(self, name: str, labels: Optional[dict[str, str]] = None) -> float:
        """Current counter value, 0 when never incremented."""
        key = self._make_key(name, labels)
        with self._lock:
            return self._counters.get(key, 0)

    def get_histogram_stats(
        self,
        name: str,
        labels: Optional[dict[str, str]] = None,
    ) -> dict[str, float]:
        """Count, min, max, avg and p50/p95 of a histogram.

        ``name`` may also be a full key as produced by ``get_all``.
        """
        key = self._make_key(name, labels)
        with self._lock:
            values = list(self._histograms.get(key, []))

        if not values:
            return {"count": 0, "min": 0, "max": 0, "avg": 0}

        ordered = sorted(values)
        count = len(ordered)
        return {
            "count": count,
            "min": ordered[0],
            "max": ordered[-1],
            "avg": sum(ordered) / count,
            "p50": ordered[int(count * 0.5)],
            "p95": ordered[min(int(count * 0.95), count - 1)],
        }

    def get_all(self) -> dict[str, Any]:
        with self._lock:
            histogram_keys = list(self._histograms.keys())
            counters = dict(self._counters)
        return {
            "counters": counters,
            "histograms": {k: self.get_histogram_stats(k) for k in histogram_keys},
        }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


_collector = MetricsCollector()


def get_collector() -> MetricsCollector:
    """Get the process-wide metrics collector."""
    return _collector
