"""
OpenTelemetry metrics for the user migration and login hand-off.

Business code calls the helpers on MetricsCollector through
get_metrics_collector(); nothing is recorded until initialize_metrics()
has run, so the migration path never depends on telemetry being configured.
"""

import logging
from typing import Optional

from opentelemetry import metrics
from opentelemetry.metrics import Counter, Histogram

logger = logging.getLogger(__name__)


class MetricsCollector:
    """Centralized metrics collection for the application."""

    def __init__(self):
        self.meter = metrics.get_meter(__name__)

        self.migration_attempts: Counter = self.meter.create_counter(
            name="nayscake.migration.attempts",
            description="Legacy user migration attempts by outcome",
            unit="1",
        )
        self.migration_duration: Histogram = self.meter.create_histogram(
            name="nayscake.migration.duration",
            description="Duration of legacy user migration attempts",
            unit="ms",
        )
        self.auth_provider_requests: Counter = self.meter.create_counter(
            name="nayscake.auth_provider.requests",
            description="Requests made to the auth provider",
            unit="1",
        )
        self.request_duration: Histogram = self.meter.create_histogram(
            name="nayscake.http.request.duration",
            description="HTTP request duration by route",
            unit="ms",
        )

    def record_migration(
        self, status: str, reason: str, duration_ms: Optional[float] = None
    ) -> None:
        """
        Record the outcome of one migration attempt.

        Args:
            status: not_applicable, migrated or failed
            reason: Outcome reason (legacy_user_not_found, provisioning_failed, ...)
            duration_ms: Optional attempt duration in milliseconds
        """
        attributes = {"status": status, "reason": reason}
        self.migration_attempts.add(1, attributes)
        if duration_ms is not None:
            self.migration_duration.record(duration_ms, attributes)

    def record_auth_provider_request(self, operation: str, success: bool) -> None:
        self.auth_provider_requests.add(
            1, {"operation": operation, "success": str(success).lower()}
        )

    def record_request(self, route: str, status_code: int, duration_ms: float) -> None:
        self.request_duration.record(
            duration_ms, {"route": route, "status_code": str(status_code)}
        )


_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> Optional[MetricsCollector]:
    """Return the global collector, or None when metrics are disabled."""
    return _metrics_collector


def initialize_metrics() -> None:
    """
    Initialize the global metrics collector.

    Called after the OpenTelemetry meter provider has been configured.
    """
    global _metrics_collector

    try:
        _metrics_collector = MetricsCollector()
        logger.info("Metrics collector initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize metrics collector: {e}", exc_info=True)
        _metrics_collector = None


def shutdown_metrics() -> None:
    global _metrics_collector
    _metrics_collector = None
    logger.info("Metrics collector shutdown")
