"""
Prometheus counters for the webhook pipeline.

Stale orphans are acknowledged (the provider stops retrying), so
`orphaned_events_total{decision="ack_stale"}` is what operators alert on before
running the orphan report and manual reconciliation.
"""
from __future__ import annotations

from typing import Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter

from orderledger.core.config import settings


class WebhookMetrics:
    def __init__(self, registry: Optional[CollectorRegistry] = None, enabled: bool = True):
        self.enabled = enabled
        self.registry = registry if registry is not None else REGISTRY

        self.deliveries_total = Counter(
            "orderledger_webhook_deliveries_total",
            "Webhook deliveries by outcome and response status.",
            ["outcome", "status_code"],
            registry=self.registry,
        )
        self.orphaned_events_total = Counter(
            "orderledger_orphaned_events_total",
            "Orphaned ledger outcomes by reason and acknowledgment decision.",
            ["reason", "decision"],
            registry=self.registry,
        )
        self.order_transitions_total = Counter(
            "orderledger_order_transitions_total",
            "Guarded order status transitions by result.",
            ["transition", "result"],
            registry=self.registry,
        )

    def record_delivery(self, outcome: str, status_code: int) -> None:
        if self.enabled:
            self.deliveries_total.labels(outcome=outcome, status_code=str(status_code)).inc()

    def record_orphan(self, reason: str, decision: str) -> None:
        if self.enabled:
            self.orphaned_events_total.labels(reason=reason, decision=decision).inc()

    def record_transition(self, transition: str, applied: bool) -> None:
        if self.enabled:
            self.order_transitions_total.labels(
                transition=transition, result="applied" if applied else "noop"
            ).inc()


metrics = WebhookMetrics(enabled=settings.metrics_enabled)
