"""
OpenTelemetry setup for tracing and metrics export over OTLP/HTTP.
"""

import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def parse_otlp_headers(otlp_headers: Optional[str]) -> Optional[Dict[str, str]]:
    """
    Parse "key1=value1,key2=value2" into a header dict.

    Returns None when nothing usable is present.
    """
    if not otlp_headers:
        return None
    headers_dict = {}
    for header in otlp_headers.split(","):
        if "=" in header:
            key, value = header.split("=", 1)
            headers_dict[key.strip()] = value.strip()
    return headers_dict or None


def initialize_telemetry(
    enabled: bool = False,
    metrics_enabled: bool = False,
    service_name: Optional[str] = None,
    environment: str = "development",
    otlp_endpoint: Optional[str] = None,
    otlp_headers: Optional[str] = None,
) -> None:
    """
    Initialize OpenTelemetry tracing and metrics.

    Args:
        enabled: Whether to enable tracing
        metrics_enabled: Whether to enable metrics collection
        service_name: Name of the service (defaults to nayscake-api-<environment>)
        environment: Environment name (development, staging, production)
        otlp_endpoint: Base OTLP endpoint URL, without /v1/traces or /v1/metrics
        otlp_headers: Comma separated key=value authentication headers
    """
    if not enabled and not metrics_enabled:
        logger.info("OpenTelemetry is disabled")
        return

    if not otlp_endpoint:
        logger.warning(
            "OpenTelemetry is enabled but OTEL_EXPORTER_OTLP_ENDPOINT is not set. "
            "Telemetry will not be exported."
        )
        return

    try:
        from opentelemetry import metrics as otel_metrics
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
            OTLPMetricExporter,
        )
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter,
        )
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        resource = Resource.create(
            {
                "service.name": service_name or f"nayscake-api-{environment}",
                "deployment.environment": environment,
            }
        )
        headers = parse_otlp_headers(otlp_headers)
        base_endpoint = otlp_endpoint.rstrip("/")
        for suffix in ("/v1/traces", "/v1/metrics"):
            if base_endpoint.endswith(suffix):
                base_endpoint = base_endpoint[: -len(suffix)]

        if enabled:
            tracer_provider = TracerProvider(resource=resource)
            tracer_provider.add_span_processor(
                BatchSpanProcessor(
                    OTLPSpanExporter(
                        endpoint=f"{base_endpoint}/v1/traces",
                        headers=headers,
                        timeout=10,
                    )
                )
            )
            trace.set_tracer_provider(tracer_provider)
            logger.info("OpenTelemetry tracing initialized successfully")

        if metrics_enabled:
            metric_reader = PeriodicExportingMetricReader(
                exporter=OTLPMetricExporter(
                    endpoint=f"{base_endpoint}/v1/metrics",
                    headers=headers,
                    timeout=10,
                ),
                export_interval_millis=60000,
            )
            otel_metrics.set_meter_provider(
                MeterProvider(resource=resource, metric_readers=[metric_reader])
            )

            from nayscake.core.metrics import initialize_metrics

            initialize_metrics()
            logger.info("OpenTelemetry metrics initialized successfully")

    except ImportError as e:
        logger.error(
            f"Failed to initialize OpenTelemetry: {e}. "
            "Please ensure opentelemetry packages are installed."
        )
    except Exception as e:
        logger.error(f"Unexpected error initializing OpenTelemetry: {e}")
