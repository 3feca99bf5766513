"""Generation metrics collection and aggregation."""

import time
from collections import deque
from typing import Any, Callable, Optional

from .models import GenerationMetric


class MetricsCollector:
    """Keeps the most recent generation metrics in memory."""

    def __init__(self, max_entries: int = 10_000, clock: Callable[[], float] = time.time):
        self._metrics: deque[GenerationMetric] = deque(maxlen=max_entries)
        self._rate_limit_hits: deque[float] = deque(maxlen=max_entries)
        self._clock = clock

    def __len__(self) -> int:
        return len(self._metrics)

    def record(self, metric: GenerationMetric) -> None:
        """Record one generation."""
        self._metrics.append(metric)

    def record_rate_limit_hit(self) -> None:
        """Record that a caller had to wait for a rate limit slot."""
        self._rate_limit_hits.append(self._clock())

    def get_metrics(self) -> list[GenerationMetric]:
        """Get a copy of all retained metrics, oldest first."""
        return list(self._metrics)

    def get_aggregated(self, window: Optional[float] = 3600.0) -> dict[str, Any]:
        """Aggregate metrics recorded within the last ``window`` seconds.

        Args:
            window: Lookback in seconds, or None for everything retained
        """
        since = None if window is None else self._clock() - window
        recent = [m for m in self._metrics if since is None or m.request_time >= since]
        rate_limit_hits = sum(1 for t in self._rate_limit_hits if since is None or t >= since)

        total = len(recent)
        successful = sum(1 for m in recent if m.success)
        cached = sum(1 for m in recent if m.cached)
        latencies = [m.latency for m in recent if not m.cached]
        tokens_used = sum(m.tokens_used for m in recent)

        provider_usage: dict[str, int] = {}
        model_usage: dict[str, int] = {}
        error_types: dict[str, int] = {}
        for m in recent:
            provider_usage[m.provider] = provider_usage.get(m.provider, 0) + 1
            if m.model:
                model_usage[m.model] = model_usage.get(m.model, 0) + 1
            if m.error_kind:
                error_types[m.error_kind] = error_types.get(m.error_kind, 0) + 1

        return {
            "total_requests": total,
            "successful_requests": successful,
            "failed_requests": total - successful,
            "average_latency": sum(latencies) / len(latencies) if latencies else 0.0,
            "total_tokens_used": tokens_used,
            "cache_hit_rate": cached / total if total else 0.0,
            "rate_limit_hits": rate_limit_hits,
            "provider_usage": provider_usage,
            "model_usage": model_usage,
            "error_types": error_types,
        }

    def clear(self) -> None:
        """Drop all recorded metrics."""
        self._metrics.clear()
        self._rate_limit_hits.clear()
