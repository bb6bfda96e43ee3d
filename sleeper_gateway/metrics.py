"""In-process metrics for the gateway.

Provides: MetricsCollector, get_metrics_collector, reset_metrics_collector.
"""
from __future__ import annotations
import threading, time
from dataclasses import dataclass
from collections import defaultdict, deque
from datetime import datetime, UTC
from typing import Dict, Any

@dataclass
class MetricPoint:
    timestamp: float
    value: float

@dataclass
class MetricSummary:
    count: int = 0
    total: float = 0.0
    min_value: float = float('inf')
    max_value: float = float('-inf')
    avg_value: float = 0.0
    last_updated: datetime | None = None

class MetricsCollector:
    def __init__(self, retention_hours: int = 24, max_points: int = 10000):
        self._lock = threading.RLock()
        self._retention_seconds = retention_hours * 3600
        self._counters: Dict[str, int] = defaultdict(int)
        self._timings: Dict[str, deque] = defaultdict(lambda: deque(maxlen=max_points))
        self._summaries: Dict[str, MetricSummary] = defaultdict(MetricSummary)

    def _make_key(self, name: str, labels: Dict[str, Any]) -> str:
        if not labels:
            return name
        label_str = '|'.join(f'{k}={v}' for k, v in sorted(labels.items()))
        return f'{name}|{label_str}'

    def _update_summary(self, key: str, value: float) -> None:
        summary = self._summaries[key]
        summary.count += 1
        summary.total += value
        summary.min_value = min(summary.min_value, value)
        summary.max_value = max(summary.max_value, value)
        summary.avg_value = summary.total / summary.count
        summary.last_updated = datetime.now(UTC)

    def _cleanup_old(self, key: str) -> None:
        cutoff = time.time() - self._retention_seconds
        dq = self._timings.get(key)
        while dq and dq[0].timestamp < cutoff:
            dq.popleft()

    def increment_counter(self, name: str, value: int = 1, **labels) -> None:
        with self._lock:
            key = self._make_key(name, labels)
            self._counters[key] += value

    def record_timing(self, name: str, duration_ms: float, **labels) -> None:
        with self._lock:
            key = self._make_key(name, labels)
            self._timings[key].append(MetricPoint(time.time(), duration_ms))
            self._update_summary(key, duration_ms)
            self._cleanup_old(key)

    def get_counter(self, name: str, **labels) -> int:
        with self._lock:
            return self._counters.get(self._make_key(name, labels), 0)

    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'timestamp': datetime.now(UTC).isoformat(),
                'counters': dict(self._counters),
                'summaries': {
                    name: {
                        'count': s.count,
                        'total': s.total,
                        'min': 0 if s.min_value == float('inf') else s.min_value,
                        'max': 0 if s.max_value == float('-inf') else s.max_value,
                        'avg': s.avg_value,
                        'last_updated': s.last_updated.isoformat() if s.last_updated else None
                    } for name, s in self._summaries.items()
                }
            }

_metrics = MetricsCollector()

def get_metrics_collector() -> MetricsCollector:
    return _metrics

def reset_metrics_collector() -> MetricsCollector:
    """Replace the global collector with an empty one (tests)."""
    global _metrics
    _metrics = MetricsCollector()
    return _metrics
