"""
Custom exception classes for the subscription webhook service.
"""

from typing import Any, Dict, Optional
from starlette.status import (
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE
)


class BaseSubscriptionException(Exception):
    """Base exception for all subscription webhook errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class NotificationDeliveryError(BaseSubscriptionException):
    """Raised when a notification cannot be delivered to its subscription."""
    pass


class ClientTokenMismatchError(NotificationDeliveryError):
    """Raised when a notification carries a client token the subscription does not expect."""
    pass


class StoreInitializationError(BaseSubscriptionException):
    """Raised when the subscription store cannot be created."""
    pass


class ConfigurationError(BaseSubscriptionException):
    """Raised when configuration is invalid."""
    pass


class NotificationContentClosedError(BaseSubscriptionException):
    """Raised when notification content is read after it was released."""
    pass


# HTTP Exception mapping
class HTTPExceptionHandler:
    """Maps custom exceptions to HTTP status codes."""

    EXCEPTION_MAP = {
        NotificationDeliveryError: HTTP_500_INTERNAL_SERVER_ERROR,
        ClientTokenMismatchError: HTTP_500_INTERNAL_SERVER_ERROR,
        StoreInitializationError: HTTP_503_SERVICE_UNAVAILABLE,
        ConfigurationError: HTTP_500_INTERNAL_SERVER_ERROR,
        NotificationContentClosedError: HTTP_500_INTERNAL_SERVER_ERROR,
    }

    @classmethod
    def status_code_for(cls, exc: BaseSubscriptionException) -> int:
        """Resolve the HTTP status code for a custom exception."""
        return cls.EXCEPTION_MAP.get(type(exc), HTTP_500_INTERNAL_SERVER_ERROR)


# Specific error factory functions
def create_token_mismatch_error(subscription_id: str) -> ClientTokenMismatchError:
    """Create a client token mismatch error."""
    return ClientTokenMismatchError(
        message=f"Token mismatch for subscription with id={subscription_id}",
        error_code="CLIENT_TOKEN_MISMATCH",
        details={"subscription_id": subscription_id}
    )


def create_store_initialization_error(factory: str, reason: str) -> StoreInitializationError:
    """Create a store initialization error."""
    return StoreInitializationError(
        message=f"Failed to create subscription store: {reason}",
        error_code="STORE_INITIALIZATION_FAILED",
        details={"factory": factory, "reason": reason}
    )
