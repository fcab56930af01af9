"""Prometheus metrics for election participants.

Provides:
- Vote and leadership counters per election root
- Watch installation and reelection outcome counters
- Store error counts per operation
- Candidate count per lifecycle state

Usage:
    from zkelect.observability.metrics import get_metrics

    metrics = get_metrics()
    metrics.leader_elected_total.labels(root="/election").inc()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest

from zkelect.config import ElectionSettings, settings

logger = logging.getLogger(__name__)


class NoOpMetric:
    """No-op metric for when metrics are disabled."""

    def labels(self, **kwargs: Any) -> "NoOpMetric":
        """Return self for chaining."""
        return self

    def inc(self, amount: float = 1) -> None:
        pass

    def dec(self, amount: float = 1) -> None:
        pass

    def set(self, value: float) -> None:
        pass


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    votes_total: Any = None
    leader_elected_total: Any = None
    watches_installed_total: Any = None
    reelections_total: Any = None
    store_errors_total: Any = None
    candidates: Any = None

    # Internal state
    enabled: bool = True
    _initialized: bool = field(default=False, repr=False)
    _registry: CollectorRegistry | None = field(default=None, repr=False)

    def initialize(self) -> None:
        """Create the Prometheus collectors."""
        if self._initialized:
            return

        if not self.enabled:
            logger.info("Metrics are disabled")
            noop = NoOpMetric()
            self.votes_total = noop
            self.leader_elected_total = noop
            self.watches_installed_total = noop
            self.reelections_total = noop
            self.store_errors_total = noop
            self.candidates = noop
            self._initialized = True
            return

        self._registry = CollectorRegistry()

        self.votes_total = Counter(
            "zkelect_votes_total",
            "Candidates that registered for election",
            ["root"],
            registry=self._registry,
        )

        self.leader_elected_total = Counter(
            "zkelect_leader_elected_total",
            "Candidates that became leader",
            ["root"],
            registry=self._registry,
        )

        self.watches_installed_total = Counter(
            "zkelect_watches_installed_total",
            "Predecessor watches installed",
            ["root"],
            registry=self._registry,
        )

        self.reelections_total = Counter(
            "zkelect_reelections_total",
            "Reelection cycles triggered by a predecessor deletion",
            ["root", "outcome"],
            registry=self._registry,
        )

        self.store_errors_total = Counter(
            "zkelect_store_errors_total",
            "Failed coordination store operations",
            ["operation"],
            registry=self._registry,
        )

        self.candidates = Gauge(
            "zkelect_candidates",
            "Candidates in this process by lifecycle state",
            ["state"],
            registry=self._registry,
        )

        self._initialized = True
        logger.debug("Prometheus metrics initialized")

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if self._registry is None:
            return b"# Metrics disabled\n"
        return generate_latest(self._registry)


# Global metrics registry
metrics_registry = MetricsRegistry(enabled=settings.enable_metrics)
_disabled_registry = MetricsRegistry(enabled=False)


def get_metrics(election_settings: ElectionSettings | None = None) -> MetricsRegistry:
    """Get the metrics registry for a candidate.

    Collectors are process-wide and live in ``metrics_registry``. Settings
    with ``enable_metrics`` off get a registry of no-op metrics instead.
    Initializes metrics on first access.
    """
    if election_settings is not None and not election_settings.enable_metrics:
        registry = _disabled_registry
    else:
        registry = metrics_registry
    if not registry._initialized:
        registry.initialize()
    return registry
