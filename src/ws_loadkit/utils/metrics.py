"""
Metrics collection utilities for ws-loadkit.

The splitter and signer never report metrics themselves; callers feed their
structured results into a collector.
"""

import time
import statistics
import threading
from typing import Dict, Any, Optional, TYPE_CHECKING
from collections import defaultdict, deque
from datetime import datetime, timezone

if TYPE_CHECKING:
    from ..streaming.splitter import SplitResult


class MetricsCollector:
    """Thread-safe metrics collector."""

    def __init__(self, max_samples: int = 1000):
        self._lock = threading.Lock()
        self._counters: Dict[str, float] = defaultdict(float)
        self._gauges: Dict[str, float] = {}
        self._timers: Dict[str, deque] = defaultdict(lambda: deque(maxlen=max_samples))

    def counter(self, name: str, value: float = 1) -> None:
        """Increment a counter metric."""
        with self._lock:
            self._counters[name] += value

    def gauge(self, name: str, value: float) -> None:
        """Set a gauge metric."""
        with self._lock:
            self._gauges[name] = value

    def timer(self, name: str, duration: float) -> None:
        """Record a timer value in seconds."""
        with self._lock:
            self._timers[name].append(duration)

    def timing(self, name: str) -> 'TimingContext':
        """Context manager for timing operations."""
        return TimingContext(self, name)

    def get_counter(self, name: str) -> float:
        with self._lock:
            return self._counters.get(name, 0)

    def get_gauge(self, name: str) -> Optional[float]:
        with self._lock:
            return self._gauges.get(name)

    def get_metrics(self) -> Dict[str, Any]:
        """Get all current metrics."""
        with self._lock:
            metrics = {
                "counters": dict(self._counters),
                "gauges": dict(self._gauges),
                "timers": {},
                "timestamp": datetime.now(timezone.utc).isoformat()
            }

            for key, durations in self._timers.items():
                if durations:
                    metrics["timers"][key] = {
                        "count": len(durations),
                        "min": min(durations),
                        "max": max(durations),
                        "mean": statistics.mean(durations),
                        "median": statistics.median(durations),
                        "p95": self._percentile(durations, 0.95),
                    }

            return metrics

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._timers.clear()

    def _percentile(self, values: deque, percentile: float) -> float:
        sorted_values = sorted(values)
        k = (len(sorted_values) - 1) * percentile
        f = int(k)
        c = k - f

        if f == len(sorted_values) - 1:
            return sorted_values[f]
        return sorted_values[f] * (1 - c) + sorted_values[f + 1] * c


class TimingContext:
    """Context manager for timing operations."""

    def __init__(self, collector: MetricsCollector, name: str):
        self.collector = collector
        self.name = name
        self.start_time = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.collector.timer(self.name, time.perf_counter() - self.start_time)


def record_split(collector: MetricsCollector, result: "SplitResult") -> None:
    """Feed a split result into the fragment counters."""
    collector.counter("fragments_parsed", result.parsed_count)
    collector.counter("fragments_dropped", result.dropped_count)
    if result.has_trailing_fragment:
        collector.counter("fragments_incomplete")


__all__ = [
    'MetricsCollector',
    'TimingContext',
    'record_split',
]
