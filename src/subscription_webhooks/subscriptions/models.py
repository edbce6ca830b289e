"""
Subscription models and notification callback contract.
"""

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from subscription_webhooks.webhooks.models import UnparsedNotification


class NotificationCallback(ABC):
    """
    Receives notifications delivered to a subscription.

    Implementations may define ``handle_notification`` as a coroutine or as a
    plain method; both are awaited correctly by the delivery path.
    """

    @abstractmethod
    def handle_notification(
        self, subscription: "Subscription", notification: "UnparsedNotification"
    ) -> Any:
        """Handle a single notification for ``subscription``."""

    def __call__(
        self, subscription: "Subscription", notification: "UnparsedNotification"
    ) -> Any:
        return self.handle_notification(subscription, notification)


def _is_async_callback(callback: Callable[..., Any]) -> bool:
    if inspect.iscoroutinefunction(callback):
        return True
    if isinstance(callback, NotificationCallback):
        return inspect.iscoroutinefunction(callback.handle_notification)
    return inspect.iscoroutinefunction(getattr(callback, "__call__", None))


async def invoke_callback(
    callback: Callable[..., Any],
    subscription: "Subscription",
    notification: "UnparsedNotification",
) -> None:
    """
    Invoke a sync or async callback and wait for it to finish.

    Sync callbacks run in a worker thread, off the event loop.
    """
    if _is_async_callback(callback):
        await callback(subscription, notification)
        return

    result = await asyncio.to_thread(callback, subscription, notification)
    if inspect.isawaitable(result):
        await result


class Subscription(BaseModel):
    """A subscription registered with a topic, and the callback that receives it."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    subscription_id: str = Field(..., description="Subscription identifier", min_length=1)
    topic_id: str | None = Field(None, description="Topic the subscription is bound to")
    client_token: str | None = Field(
        None, description="Token every notification must echo back; empty disables the check"
    )
    expires_at: datetime | None = Field(None, description="Absolute expiry, UTC")
    callback: Callable[..., Any] = Field(
        ..., description="Receives (subscription, notification)", exclude=True
    )

    @field_validator("expires_at")
    @classmethod
    def validate_expires_at(cls, v: datetime | None) -> datetime | None:
        """Treat naive expiry timestamps as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_expired(self, now: datetime | None = None) -> bool:
        """Whether the subscription has passed its expiry time."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    def accepts_token(self, client_token: str | None) -> bool:
        """Whether a notification carrying ``client_token`` may be delivered."""
        if not self.client_token:
            return True
        return self.client_token == client_token
