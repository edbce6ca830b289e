"""
Error classification and error boundaries with observability.
"""

import time
from contextlib import contextmanager
from typing import Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from subscription_webhooks.core.exceptions import (
    BaseSubscriptionException,
    ClientTokenMismatchError,
    ConfigurationError,
    NotificationDeliveryError,
    StoreInitializationError,
)
from subscription_webhooks.core.observability import increment_counter, trace_span


class ErrorClassifier:
    """Classifies errors into categories for proper handling."""

    IO_EXCEPTIONS = (
        OSError,
        ConnectionError,
        TimeoutError,
    )

    VALIDATION_EXCEPTIONS = (
        PydanticValidationError,
        TypeError,
        ValueError,
    )

    DELIVERY_EXCEPTIONS = (
        ClientTokenMismatchError,
        NotificationDeliveryError,
    )

    STORE_EXCEPTIONS = (
        StoreInitializationError,
        ConfigurationError,
    )

    @classmethod
    def classify_error(cls, error: Exception) -> str:
        """Classify an error into a category."""
        if isinstance(error, cls.DELIVERY_EXCEPTIONS):
            return "delivery"
        elif isinstance(error, cls.STORE_EXCEPTIONS):
            return "store"
        elif isinstance(error, BaseSubscriptionException):
            return "business"
        elif isinstance(error, cls.IO_EXCEPTIONS):
            return "io"
        elif isinstance(error, cls.VALIDATION_EXCEPTIONS):
            return "validation"
        else:
            return "unexpected"


class ErrorContext:
    """Context for error handling with metadata."""

    def __init__(
        self, operation: str, component: str, metadata: dict[str, Any] | None = None
    ):
        self.operation = operation
        self.component = component
        self.metadata = metadata or {}
        self.start_time = time.time()

    def get_context(self) -> dict[str, Any]:
        """Get error context as dictionary."""
        return {
            "operation": self.operation,
            "component": self.component,
            "duration_ms": int((time.time() - self.start_time) * 1000),
            "metadata": self.metadata,
        }


@contextmanager
def error_boundary(
    operation: str,
    component: str = "unknown",
    metadata: dict[str, Any] | None = None,
):
    """
    Context manager that logs, counts and traces failures of a code block.

    Errors are always re-raised: the boundary observes faults, it never
    recovers from them.

    Args:
        operation: Name of the operation being performed
        component: Component/service name
        metadata: Extra fields attached to the log record and span
    """
    context = ErrorContext(operation, component, metadata)

    try:
        with trace_span(f"{component}.{operation}", context.metadata):
            yield context

    except Exception as e:
        error_category = ErrorClassifier.classify_error(e)

        logger.bind(
            **context.get_context(),
            error_category=error_category,
            exception_class=e.__class__.__name__,
        ).opt(exception=error_category == "unexpected").error(
            f"Error in {operation}: {e}"
        )

        increment_counter(
            "webhook_errors_total",
            {
                "operation": operation,
                "component": component,
                "error_type": error_category,
            },
        )
        raise
