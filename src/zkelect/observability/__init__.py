"""Observability module for zkelect.

Provides metrics and structured logging:
- Prometheus metrics for votes, leadership changes and store errors
- JSON or console logging with election context
"""

from zkelect.observability.logging import (
    LogContext,
    candidate_var,
    configure_logging,
    election_var,
)
from zkelect.observability.metrics import (
    MetricsRegistry,
    get_metrics,
    metrics_registry,
)

__all__ = [
    # Logging
    "configure_logging",
    "LogContext",
    "election_var",
    "candidate_var",
    # Metrics
    "MetricsRegistry",
    "metrics_registry",
    "get_metrics",
]
