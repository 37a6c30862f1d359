"""
Multigov - Monitoring Module

- Structured logging
- In-process metrics
"""

from .logging import configure_logging, log_duration
from .metrics import (
    Counter,
    Histogram,
    MetricsRegistry,
    get_metrics_registry,
    metrics,
    proposals_created_total,
    reset_metrics,
    votes_counted_total,
    votes_rejected_total,
    winner_selection_duration_seconds,
)

__all__ = [
    "MetricsRegistry",
    "Counter",
    "Histogram",
    "metrics",
    "get_metrics_registry",
    "reset_metrics",
    "proposals_created_total",
    "votes_counted_total",
    "votes_rejected_total",
    "winner_selection_duration_seconds",
    "configure_logging",
    "log_duration",
]
