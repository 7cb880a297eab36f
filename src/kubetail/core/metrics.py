"""
Prometheus metrics collection.

In-memory counters for the delivery pipeline. Exposed over HTTP only
when a metrics port is configured.
"""

from typing import Optional

import structlog
from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Info, start_http_server

from .. import __version__

logger = structlog.get_logger(__name__)


class MetricsCollector:
    """
    Centralized metrics collection for kube-tail.

    Pass a dedicated registry to keep collectors isolated (tests create
    one per collector).
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry if registry is not None else REGISTRY

        # Service info
        self.service_info = Info(
            "kubetail_service",
            "kube-tail service information",
            registry=self.registry,
        )
        self.service_info.info({
            "version": __version__,
            "service": "kube-tail",
        })

        # Delivery metrics
        self.messages_received_total = Counter(
            "kubetail_messages_received_total",
            "Total messages delivered by the subscription",
            registry=self.registry,
        )

        self.messages_filtered_total = Counter(
            "kubetail_messages_filtered_total",
            "Total messages acknowledged without output because they were out of scope",
            ["reason"],
            registry=self.registry,
        )

        self.messages_printed_total = Counter(
            "kubetail_messages_printed_total",
            "Total summary lines written to the output sink",
            registry=self.registry,
        )

        self.messages_rejected_total = Counter(
            "kubetail_messages_rejected_total",
            "Total messages negatively acknowledged",
            ["reason"],
            registry=self.registry,
        )

        self.decode_errors_total = Counter(
            "kubetail_decode_errors_total",
            "Total payloads that decoded only partially",
            registry=self.registry,
        )

        # Budget
        self.budget_used = Gauge(
            "kubetail_budget_used",
            "Messages counted against the processing budget",
            registry=self.registry,
        )

    def record_received(self, budget_count: int) -> None:
        """Record an inbound message and the budget counter after it."""
        self.messages_received_total.inc()
        self.budget_used.set(budget_count)

    def record_filtered(self, reason: str) -> None:
        """Record an out-of-scope message."""
        self.messages_filtered_total.labels(reason=reason).inc()

    def record_printed(self) -> None:
        """Record a rendered summary line."""
        self.messages_printed_total.inc()

    def record_rejected(self, reason: str) -> None:
        """Record a negatively acknowledged message."""
        self.messages_rejected_total.labels(reason=reason).inc()

    def record_decode_error(self) -> None:
        """Record a partial decode."""
        self.decode_errors_total.inc()

    def serve(self, port: int) -> None:
        """Expose the registry over HTTP on the given port."""
        start_http_server(port, registry=self.registry)
        logger.info("Metrics endpoint started", port=port)
