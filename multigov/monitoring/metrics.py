"""
Multigov - Metrics

In-process metrics collection with Prometheus text export.

Metrics Categories:
- Proposal metrics (created, by counting mode)
- Vote metrics (counted by policy, rejected by reason)
- Selection metrics (winner selection latency)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, cast

import structlog

logger = structlog.get_logger(__name__)


# =============================================================================
# Metric Types
# =============================================================================

@dataclass
class Counter:
    """A monotonically increasing counter."""
    name: str
    description: str
    labels: list[str] = field(default_factory=list)
    _values: dict[tuple[str, ...], float] = field(default_factory=dict)
    _max_cardinality: int = 1000
    _cardinality_warned: bool = field(default=False, repr=False)

    def inc(self, value: float = 1.0, **labels: str) -> None:
        """Increment the counter with cardinality protection."""
        key = self._label_key(labels)

        if key not in self._values:
            if len(self._values) >= self._max_cardinality:
                if not self._cardinality_warned:
                    logger.warning(
                        "metric_cardinality_limit",
                        metric=self.name,
                        limit=self._max_cardinality,
                    )
                    self._cardinality_warned = True
                return

        self._values[key] = self._values.get(key, 0) + value

    def value(self, **labels: str) -> float:
        """Current value for a label set (0 if never incremented)."""
        return self._values.get(self._label_key(labels), 0.0)

    def reset(self) -> None:
        self._values.clear()
        self._cardinality_warned = False

    def _label_key(self, labels: dict[str, str]) -> tuple[str, ...]:
        return tuple(labels.get(label, "") for label in self.labels)

    def collect(self) -> list[dict[str, Any]]:
        """Collect all metric values."""
        return [
            {
                "name": self.name,
                "type": "counter",
                "labels": dict(zip(self.labels, key, strict=False)),
                "value": value,
            }
            for key, value in self._values.items()
        ]


@dataclass
class Histogram:
    """A metric that samples observations into buckets."""
    name: str
    description: str
    labels: list[str] = field(default_factory=list)
    buckets: list[float] = field(default_factory=lambda: [
        0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0
    ])
    _stats: dict[tuple[str, ...], dict[str, Any]] = field(default_factory=dict)

    def observe(self, value: float, **labels: str) -> None:
        """Observe a value."""
        key = self._label_key(labels)

        if key not in self._stats:
            self._stats[key] = {"count": 0, "sum": 0.0, "bucket_counts": dict.fromkeys(self.buckets, 0)}
            self._stats[key]["bucket_counts"][float("inf")] = 0

        self._stats[key]["count"] += 1
        self._stats[key]["sum"] += value

        for bucket in self.buckets:
            if value <= bucket:
                self._stats[key]["bucket_counts"][bucket] += 1
        self._stats[key]["bucket_counts"][float("inf")] += 1

    def count(self, **labels: str) -> int:
        stats = self._stats.get(self._label_key(labels))
        return int(stats["count"]) if stats else 0

    def reset(self) -> None:
        self._stats.clear()

    def _label_key(self, labels: dict[str, str]) -> tuple[str, ...]:
        return tuple(labels.get(label, "") for label in self.labels)

    def collect(self) -> list[dict[str, Any]]:
        """Collect histogram metrics using pre-computed statistics."""
        results: list[dict[str, Any]] = []
        for key, stats in self._stats.items():
            results.append({
                "name": self.name,
                "type": "histogram",
                "labels": dict(zip(self.labels, key, strict=False)),
                "buckets": stats["bucket_counts"].copy(),
                "sum": stats["sum"],
                "count": stats["count"],
            })
        return results


class MetricsRegistry:
    """
    Central registry for all counting metrics.

    Usage:
        metrics = MetricsRegistry()

        votes = metrics.counter(
            "votes_counted_total",
            "Votes applied to a tally",
            ["policy"],
        )

        votes.inc(policy="approval")
    """

    def __init__(self, prefix: str = "multigov"):
        self.prefix = prefix
        self._metrics: dict[str, Counter | Histogram] = {}
        self._start_time = time.time()

    def counter(
        self,
        name: str,
        description: str,
        labels: list[str] | None = None,
    ) -> Counter:
        """Create or get a counter metric."""
        full_name = f"{self.prefix}_{name}"
        if full_name not in self._metrics:
            self._metrics[full_name] = Counter(
                name=full_name,
                description=description,
                labels=labels or [],
            )
        return cast(Counter, self._metrics[full_name])

    def histogram(
        self,
        name: str,
        description: str,
        labels: list[str] | None = None,
        buckets: list[float] | None = None,
    ) -> Histogram:
        """Create or get a histogram metric."""
        full_name = f"{self.prefix}_{name}"
        if full_name not in self._metrics:
            histogram = Histogram(
                name=full_name,
                description=description,
                labels=labels or [],
            )
            if buckets:
                histogram.buckets = buckets
            self._metrics[full_name] = histogram
        return cast(Histogram, self._metrics[full_name])

    def collect_all(self) -> list[dict[str, Any]]:
        """Collect all metrics."""
        results = []
        for metric in self._metrics.values():
            results.extend(metric.collect())
        return results

    def reset(self) -> None:
        """Zero every registered metric in place."""
        for metric in self._metrics.values():
            metric.reset()

    def to_prometheus_format(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = []

        for metric in self._metrics.values():
            lines.append(f"# HELP {metric.name} {metric.description}")

            if isinstance(metric, Counter):
                lines.append(f"# TYPE {metric.name} counter")
                for item in metric.collect():
                    label_str = self._format_labels(item["labels"])
                    lines.append(f"{metric.name}{label_str} {item['value']}")

            elif isinstance(metric, Histogram):
                lines.append(f"# TYPE {metric.name} histogram")
                for item in metric.collect():
                    base_labels = item["labels"]
                    for bucket, count in item["buckets"].items():
                        bucket_labels = {**base_labels, "le": "+Inf" if bucket == float("inf") else str(bucket)}
                        label_str = self._format_labels(bucket_labels)
                        lines.append(f"{metric.name}_bucket{label_str} {count}")

                    label_str = self._format_labels(base_labels)
                    lines.append(f"{metric.name}_sum{label_str} {item['sum']}")
                    lines.append(f"{metric.name}_count{label_str} {item['count']}")

            lines.append("")

        lines.append(f"# HELP {self.prefix}_process_start_time_seconds Start time of the process")
        lines.append(f"# TYPE {self.prefix}_process_start_time_seconds gauge")
        lines.append(f"{self.prefix}_process_start_time_seconds {self._start_time}")

        return "\n".join(lines)

    def _format_labels(self, labels: dict[str, Any]) -> str:
        """Format labels for Prometheus output."""
        if not labels:
            return ""
        parts = [f'{k}="{v}"' for k, v in labels.items() if v]
        return "{" + ",".join(parts) + "}" if parts else ""


# =============================================================================
# Pre-defined Counting Metrics
# =============================================================================

# Global registry
metrics = MetricsRegistry()

proposals_created_total = metrics.counter(
    "proposals_created_total",
    "Total proposals created",
    ["mode"],
)

votes_counted_total = metrics.counter(
    "votes_counted_total",
    "Votes applied to a tally",
    ["policy"],
)

votes_rejected_total = metrics.counter(
    "votes_rejected_total",
    "Votes rejected before touching the tally",
    ["reason"],
)

winner_selection_duration_seconds = metrics.histogram(
    "winner_selection_duration_seconds",
    "Time spent selecting winners and slicing actions",
)


# =============================================================================
# FastAPI Integration
# =============================================================================

def create_metrics_endpoint(app: Any) -> None:
    """Create /metrics endpoint for Prometheus scraping."""
    from fastapi import Response

    @app.get("/metrics", include_in_schema=False)
    async def prometheus_metrics() -> Response:
        return Response(
            content=metrics.to_prometheus_format(),
            media_type="text/plain; version=0.0.4; charset=utf-8",
        )


# =============================================================================
# Global Functions
# =============================================================================

def get_metrics_registry() -> MetricsRegistry:
    """Get the global metrics registry."""
    return metrics


def reset_metrics() -> None:
    """Reset all metrics (for testing)."""
    metrics.reset()


__all__ = [
    "MetricsRegistry",
    "Counter",
    "Histogram",
    "metrics",
    "get_metrics_registry",
    "reset_metrics",
    "create_metrics_endpoint",
    "proposals_created_total",
    "votes_counted_total",
    "votes_rejected_total",
    "winner_selection_duration_seconds",
]
