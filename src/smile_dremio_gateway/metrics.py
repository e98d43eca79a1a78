"""SyncMetrics — Prometheus counters, histograms and gauges for the gateway.

Emits, under the ``smile_dremio_gateway`` namespace:

  - ``sync_total{operation, outcome}`` and ``sync_duration_seconds{operation, outcome}``
  - ``sync_in_flight{operation}``
  - ``compensations_total{stage, outcome}``: partial adds and whether their
    samples were removed again (makes the add consistency window visible)
  - ``decode_failures_total{category}`` and ``dropped_messages_total``
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

NAMESPACE = "smile_dremio_gateway"


class SyncMetrics:
    """Holds the gateway's collectors.

    Without an explicit *registry* a private ``CollectorRegistry`` is used so
    that several instances (e.g. in tests) never clash; pass
    ``prometheus_client.REGISTRY`` to expose them through the default exporter.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self.sync_total = Counter(
            "sync_total",
            "Synchronization tasks by operation and outcome",
            ["operation", "outcome"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.sync_duration = Histogram(
            "sync_duration_seconds",
            "Synchronization task duration",
            ["operation", "outcome"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.in_flight = Gauge(
            "sync_in_flight",
            "Synchronization tasks currently running",
            ["operation"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.compensations = Counter(
            "compensations_total",
            "Partial adds that triggered sample compensation",
            ["stage", "outcome"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.decode_failures = Counter(
            "decode_failures_total",
            "Feed messages that could not be decoded",
            ["category"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.dropped = Counter(
            "dropped_messages_total",
            "Feed messages acknowledged without matching any filter",
            namespace=NAMESPACE,
            registry=self.registry,
        )

    def observe_sync(self, operation: str, outcome: str, seconds: float) -> None:
        self.sync_total.labels(operation=operation, outcome=outcome).inc()
        self.sync_duration.labels(operation=operation, outcome=outcome).observe(
            seconds
        )

    def value(self, name: str, labels: dict[str, str] | None = None) -> float:
        """Current sample value, 0.0 if never observed (handy for assertions)."""
        result = self.registry.get_sample_value(f"{NAMESPACE}_{name}", labels or {})
        return result if result is not None else 0.0
