"""
Observability setup with OpenTelemetry tracing and Prometheus metrics.
"""

from contextlib import contextmanager
from typing import Any

from loguru import logger
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from prometheus_client import CollectorRegistry, Counter, Histogram


class CustomMetrics:
    """Notification delivery metrics using Prometheus."""

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()

        self.webhook_notifications_total = Counter(
            "webhook_notifications_total",
            "Total number of notifications received, by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.webhook_errors_total = Counter(
            "webhook_errors_total",
            "Total number of notification handling errors",
            ["operation", "component", "error_type"],
            registry=self.registry,
        )

        self.webhook_delivery_duration = Histogram(
            "webhook_delivery_duration_seconds",
            "Time spent delivering notifications to subscriptions",
            ["outcome"],
            registry=self.registry,
        )


class ObservabilityManager:
    """Central manager for tracing and metrics."""

    def __init__(self, service_name: str = "subscription-webhooks"):
        self.service_name = service_name
        self.custom_metrics = CustomMetrics()
        self.tracer = trace.get_tracer(service_name)


# Global observability manager instance
observability = ObservabilityManager()


@contextmanager
def trace_span(name: str, attributes: dict[str, Any] = None):
    """Context manager for creating traced spans."""
    with observability.tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                span.set_attribute(key, str(value))
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise


def record_metric(
    metric_name: str,
    value: float,
    labels: dict[str, str] = None,
    metric_type: str = "counter",
) -> None:
    """Record a custom metric value."""
    metric = getattr(observability.custom_metrics, metric_name, None)
    if metric is None:
        logger.warning(f"Metric not found: {metric_name}")
        return

    target = metric.labels(**labels) if labels else metric
    if metric_type == "counter":
        target.inc(value)
    elif metric_type == "histogram":
        target.observe(value)
    else:
        raise ValueError(f"Unsupported metric type: {metric_type}")


def increment_counter(name: str, labels: dict[str, str] = None) -> None:
    """Increment a counter metric."""
    record_metric(name, 1.0, labels, "counter")


def observe_histogram(name: str, value: float, labels: dict[str, str] = None) -> None:
    """Observe a value in a histogram metric."""
    record_metric(name, value, labels, "histogram")
