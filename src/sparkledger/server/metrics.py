"""Prometheus metrics for the Spark server.

Provides /metrics endpoint with Prometheus text format.
Implements simple text format without prometheus_client dependency.

Metrics exported:
- spark_http_request_duration_seconds: Request latency histogram
- spark_http_requests_total: Request count by endpoint/status
- spark_active_connections: Currently active connections
- spark_votes_total: Committed votes by resulting item status
- spark_finalizations_total: Finalized items by outcome
- spark_secondary_sync_failures_total: Secondary registry sync failures
"""

from __future__ import annotations

import logging
import re
import threading
import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

logger = logging.getLogger(__name__)

# Histogram bucket boundaries (in seconds)
LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

_ENTITY_ID = re.compile(r"^\d+\.\d+\.\d+$")


@dataclass
class HistogramData:
    """Histogram metric data."""

    buckets: dict[float, int] = field(default_factory=lambda: defaultdict(int))
    sum: float = 0.0
    count: int = 0

    def observe(self, value: float) -> None:
        """Record an observation."""
        self.sum += value
        self.count += 1
        for bucket in LATENCY_BUCKETS:
            if value <= bucket:
                self.buckets[bucket] += 1


class MetricsCollector:
    """Thread-safe metrics collector.

    Collects request and consensus metrics and provides Prometheus text format output.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

        # Request metrics: {(method, path, status): count}
        self._request_counts: dict[tuple[str, str, int], int] = defaultdict(int)

        # Latency histogram: {(method, path): HistogramData}
        self._latency_histograms: dict[tuple[str, str], HistogramData] = defaultdict(HistogramData)

        # Active connections gauge
        self._active_connections: int = 0

        # Consensus counters
        self._votes: dict[str, int] = defaultdict(int)
        self._finalizations: dict[str, int] = defaultdict(int)
        self._sync_failures: int = 0

    def record_request(self, method: str, path: str, status_code: int, duration_seconds: float) -> None:
        """Record a completed request.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: Request path (normalized)
            status_code: HTTP response status code
            duration_seconds: Request duration in seconds
        """
        normalized_path = self._normalize_path(path)

        with self._lock:
            self._request_counts[(method, normalized_path, status_code)] += 1
            self._latency_histograms[(method, normalized_path)].observe(duration_seconds)

    def _normalize_path(self, path: str) -> str:
        """Normalize path to prevent label cardinality explosion.

        Replaces ledger entity ids (shard.realm.num), UUID-like segments and
        numeric ids with placeholders.
        """
        parts = path.split("/")
        normalized = []
        for part in parts:
            if _ENTITY_ID.match(part):
                normalized.append("{id}")
            elif len(part) == 36 and part.count("-") == 4:
                normalized.append("{id}")
            elif part.isdigit():
                normalized.append("{id}")
            else:
                normalized.append(part)
        return "/".join(normalized)

    def record_vote(self, status: str, finalized: bool = False) -> None:
        """Record a committed vote and, if it finalized the item, the outcome."""
        with self._lock:
            self._votes[status] += 1
            if finalized:
                self._finalizations[status] += 1

    def record_sync_failure(self) -> None:
        with self._lock:
            self._sync_failures += 1

    def increment_connections(self) -> None:
        """Increment active connection count."""
        with self._lock:
            self._active_connections += 1

    def decrement_connections(self) -> None:
        """Decrement active connection count."""
        with self._lock:
            self._active_connections = max(0, self._active_connections - 1)

    def get_active_connections(self) -> int:
        """Get current active connection count."""
        with self._lock:
            return self._active_connections

    def format_prometheus(self) -> str:
        """Format all metrics in Prometheus text format.

        Returns:
            Prometheus text format string
        """
        lines: list[str] = []

        with self._lock:
            lines.append("# HELP spark_http_requests_total Total HTTP requests")
            lines.append("# TYPE spark_http_requests_total counter")
            for (method, path, status), count in sorted(self._request_counts.items()):
                labels = f'method="{method}",path="{path}",status="{status}"'
                lines.append(f"spark_http_requests_total{{{labels}}} {count}")

            lines.append("")
            lines.append("# HELP spark_http_request_duration_seconds HTTP request latency")
            lines.append("# TYPE spark_http_request_duration_seconds histogram")
            for (method, path), histogram in sorted(self._latency_histograms.items()):
                base_labels = f'method="{method}",path="{path}"'
                cumulative = 0
                for bucket in LATENCY_BUCKETS:
                    cumulative += histogram.buckets.get(bucket, 0)
                    lines.append(f'spark_http_request_duration_seconds_bucket{{{base_labels},le="{bucket}"}} {cumulative}')
                lines.append(f'spark_http_request_duration_seconds_bucket{{{base_labels},le="+Inf"}} {histogram.count}')
                lines.append(f"spark_http_request_duration_seconds_sum{{{base_labels}}} {histogram.sum:.6f}")
                lines.append(f"spark_http_request_duration_seconds_count{{{base_labels}}} {histogram.count}")

            lines.append("")
            lines.append("# HELP spark_active_connections Currently active HTTP connections")
            lines.append("# TYPE spark_active_connections gauge")
            lines.append(f"spark_active_connections {self._active_connections}")

            lines.append("")
            lines.append("# HELP spark_votes_total Committed votes by resulting item status")
            lines.append("# TYPE spark_votes_total counter")
            for status, count in sorted(self._votes.items()):
                lines.append(f'spark_votes_total{{status="{status}"}} {count}')

            lines.append("")
            lines.append("# HELP spark_finalizations_total Finalized knowledge items by outcome")
            lines.append("# TYPE spark_finalizations_total counter")
            for outcome, count in sorted(self._finalizations.items()):
                lines.append(f'spark_finalizations_total{{outcome="{outcome}"}} {count}')

            lines.append("")
            lines.append("# HELP spark_secondary_sync_failures_total Secondary registry sync failures")
            lines.append("# TYPE spark_secondary_sync_failures_total counter")
            lines.append(f"spark_secondary_sync_failures_total {self._sync_failures}")

        lines.append("")
        return "\n".join(lines)


# Global metrics collector instance
_metrics_collector: MetricsCollector | None = None


def get_metrics_collector() -> MetricsCollector:
    """Get or create the global metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def reset_metrics_collector() -> None:
    """Drop the global collector. Useful for testing."""
    global _metrics_collector
    _metrics_collector = None


class MetricsMiddleware(BaseHTTPMiddleware):
    """Starlette middleware for collecting request metrics.

    Tracks request count, latency, and active connections.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and record metrics."""
        collector = get_metrics_collector()

        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics" or request.url.path == "/api/v1/metrics":
            return await call_next(request)

        collector.increment_connections()
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            collector.record_request(
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_seconds=time.perf_counter() - start_time,
            )
            return response
        except Exception:
            collector.record_request(
                method=request.method,
                path=request.url.path,
                status_code=500,
                duration_seconds=time.perf_counter() - start_time,
            )
            raise
        finally:
            collector.decrement_connections()


async def metrics_endpoint(request: Request) -> PlainTextResponse:
    """Prometheus metrics endpoint.

    Returns metrics in Prometheus text exposition format.
    """
    collector = get_metrics_collector()
    return PlainTextResponse(
        content=collector.format_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
