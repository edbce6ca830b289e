"""
Pydantic models and wire constants for webhook notifications.
"""

import threading
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any

from loguru import logger
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_serializer,
    field_validator,
)
from starlette.requests import Request

from ..core.exceptions import NotificationContentClosedError


class SubscriptionHeaders:
    """Headers exchanged with the notification sender."""

    SUBSCRIPTION_ID = "X-Subscription-ID"
    TOPIC_ID = "X-Topic-ID"
    TOPIC_URI = "X-Topic-URI"
    CLIENT_TOKEN = "X-Client-Token"
    EVENT_TYPE = "X-Event-Type"

    # Set on a 200 response to ask the sender to drop the subscription.
    UNSUBSCRIBE = "X-Unsubscribe"


class NotificationContent:
    """
    Lazily read request body of a notification.

    The stream can be consumed once and must be released with ``aclose``;
    releasing is idempotent.
    """

    def __init__(self, source: AsyncIterator[bytes]):
        self._source = source
        self._closed = False

    @classmethod
    def from_request(cls, request: Request) -> "NotificationContent":
        """Wrap the body stream of an incoming request without reading it."""
        return cls(request.stream())

    @classmethod
    def from_bytes(cls, data: bytes) -> "NotificationContent":
        """Wrap an in-memory body."""

        async def _single_chunk() -> AsyncIterator[bytes]:
            yield data

        return cls(_single_chunk())

    @property
    def closed(self) -> bool:
        return self._closed

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        """Yield the body in chunks as they arrive."""
        if self._closed:
            raise NotificationContentClosedError(
                message="Notification content has already been released",
                error_code="CONTENT_CLOSED",
            )
        async for chunk in self._source:
            if chunk:
                yield chunk

    async def read(self) -> bytes:
        """Read the remaining body."""
        return b"".join([chunk async for chunk in self.iter_bytes()])

    async def aclose(self) -> None:
        """Release the underlying stream."""
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()


class UnparsedNotification(BaseModel):
    """
    A notification as received from the sender, with its body left unread.

    Only constructed once every required correlation header is present.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
    )

    subscription_id: str = Field(..., description="Subscription identifier")
    topic_id: str = Field(..., description="Topic identifier")
    topic_uri: str = Field(..., description="Topic URI")
    client_token: str | None = Field(None, description="Client token echoed by the sender")
    event_type: str = Field(..., description="Event type")
    content_type: str | None = Field(None, description="Declared media type of the body")
    content: NotificationContent = Field(..., exclude=True, repr=False)

    @field_validator("client_token", "content_type")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        """Normalize empty optional headers to None."""
        return v or None

    def log_context(self) -> dict[str, Any]:
        """Fields safe to attach to log records and spans."""
        return {
            "subscription_id": self.subscription_id,
            "topic_id": self.topic_id,
            "event_type": self.event_type,
        }


class DeliveryMetrics(BaseModel):
    """Running counters for notification handling."""

    total_notifications: int = Field(default=0, ge=0)
    delivered: int = Field(default=0, ge=0, description="Accepted, subscription kept")
    unsubscribed: int = Field(default=0, ge=0, description="Answered with X-Unsubscribe")
    rejected: int = Field(default=0, ge=0, description="Malformed requests")
    failed: int = Field(default=0, ge=0, description="Delivery faults")
    average_processing_time_ms: float = Field(
        default=0.0, ge=0.0, description="Mean over requests that reached delivery"
    )
    last_notification_time: datetime | None = Field(default=None)

    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    def record(self, outcome: str, processing_time_ms: float = 0.0) -> None:
        """Record one handled request under ``outcome``."""
        if outcome not in ("delivered", "unsubscribed", "rejected", "failed"):
            logger.warning(f"Unknown delivery outcome: {outcome}")
            return

        with self._lock:
            self.total_notifications += 1
            setattr(self, outcome, getattr(self, outcome) + 1)
            self.last_notification_time = datetime.now(timezone.utc)

            # Rejected requests never reach delivery and are not timed.
            if outcome == "rejected":
                return
            timed = self.total_notifications - self.rejected
            self.average_processing_time_ms = (
                self.average_processing_time_ms * (timed - 1) + processing_time_ms
            ) / timed

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return self.model_dump(mode="json")


class HealthStatus(BaseModel):
    """Health check status model."""

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
    )

    status: str = Field(..., description="Overall health status", min_length=1)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Health check timestamp",
    )
    services: dict[str, str] = Field(
        default_factory=dict, description="Service health statuses"
    )
    metrics: dict[str, Any] | None = Field(None, description="Delivery metrics")

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime) -> str:
        """Serialize timestamp to ISO format."""
        return value.isoformat()
