"""
HTTP endpoint that receives subscription notifications.

Senders POST one notification per request. The correlation headers are
validated, the unread body is wrapped into an ``UnparsedNotification`` and
handed to the subscription store. When delivery reports that the
subscription should not continue, the response carries ``X-Unsubscribe``
so the sender stops notifying.

Malformed requests are answered with 400 and never reach the store.
Delivery faults are not recovered here; they propagate as server errors.
The request body is released on every path.
"""

import asyncio
import time

from fastapi import Request, Response
from fastapi.responses import PlainTextResponse
from loguru import logger
from starlette.status import (
    HTTP_200_OK,
    HTTP_400_BAD_REQUEST,
    HTTP_405_METHOD_NOT_ALLOWED,
)

from ..core.error_handling import error_boundary
from ..core.observability import increment_counter, observe_histogram
from ..subscriptions.store import SubscriptionStore
from .models import (
    DeliveryMetrics,
    NotificationContent,
    SubscriptionHeaders,
    UnparsedNotification,
)
from .services import Deliverer, SubscriptionStoreProvider, deliver_notification

MISSING_SUBSCRIPTION_MESSAGE = "Only notifications are supported on this endpoint."
MISSING_FIELDS_MESSAGE = "Notification did not contain all required information."


class NotificationEndpoint:
    """Validates notification requests and delegates them to the subscription store."""

    def __init__(
        self,
        store_provider: SubscriptionStoreProvider,
        deliver: Deliverer = deliver_notification,
    ):
        """
        Args:
            store_provider: Owner of the process-wide subscription store
            deliver: Delivery policy; returns False to request unsubscribe
        """
        self.store_provider = store_provider
        self.deliver = deliver
        self.metrics = DeliveryMetrics()

    def get_or_create_store(self) -> SubscriptionStore:
        """Return the shared subscription store, creating it on first use."""
        return self.store_provider.get_or_create()

    async def handle_notification(self, request: Request) -> Response:
        """Handle one POSTed notification."""
        start_time = time.time()
        headers = request.headers

        subscription_id = headers.get(SubscriptionHeaders.SUBSCRIPTION_ID)
        if subscription_id is None:
            return self._reject(MISSING_SUBSCRIPTION_MESSAGE)

        topic_id = headers.get(SubscriptionHeaders.TOPIC_ID)
        topic_uri = headers.get(SubscriptionHeaders.TOPIC_URI)
        event_type = headers.get(SubscriptionHeaders.EVENT_TYPE)
        client_token = headers.get(SubscriptionHeaders.CLIENT_TOKEN)

        if topic_id is None or topic_uri is None or event_type is None:
            return self._reject(MISSING_FIELDS_MESSAGE, subscription_id)

        content = NotificationContent.from_request(request)
        outcome = "failed"
        try:
            notification = UnparsedNotification(
                subscription_id=subscription_id,
                topic_id=topic_id,
                topic_uri=topic_uri,
                client_token=client_token,
                event_type=event_type,
                content_type=headers.get("content-type"),
                content=content,
            )

            logger.info(
                f"📨 Notification received: subscription_id={subscription_id}, "
                f"topic_id={topic_id}, event_type={event_type}"
            )

            with error_boundary(
                "deliver_notification", "webhook_endpoint", notification.log_context()
            ):
                store = await asyncio.to_thread(self.get_or_create_store)
                keep_subscription = await self.deliver(notification, store)

            if keep_subscription:
                outcome = "delivered"
                response = Response(status_code=HTTP_200_OK)
            else:
                outcome = "unsubscribed"
                response = self.send_unsubscribe_response(notification)
        finally:
            self._record(outcome, start_time)
            await self._release(content, delivery_failed=outcome == "failed")

        return response

    def send_unsubscribe_response(self, notification: UnparsedNotification) -> Response:
        """200 OK with ``X-Unsubscribe``, which makes the sender drop the subscription."""
        logger.info(f"Requesting unsubscribe for {notification.subscription_id}")
        return Response(
            status_code=HTTP_200_OK,
            headers={SubscriptionHeaders.UNSUBSCRIBE: notification.subscription_id},
        )

    async def handle_unsupported_method(self, request: Request) -> Response:
        """Reject anything but POST without touching the body."""
        logger.debug(f"Rejected {request.method} on notification endpoint")
        return Response(
            status_code=HTTP_405_METHOD_NOT_ALLOWED, headers={"Allow": "POST"}
        )

    def get_metrics(self) -> dict:
        return self.metrics.snapshot()

    def _reject(self, message: str, subscription_id: str | None = None) -> Response:
        logger.warning(
            f"Rejected notification (subscription_id={subscription_id}): {message}"
        )
        self.metrics.record("rejected")
        increment_counter("webhook_notifications_total", {"outcome": "rejected"})
        return PlainTextResponse(message, status_code=HTTP_400_BAD_REQUEST)

    async def _release(self, content: NotificationContent, delivery_failed: bool) -> None:
        try:
            await content.aclose()
        except Exception as e:
            if not delivery_failed:
                raise
            # The delivery fault already propagating takes precedence.
            logger.warning(f"Failed to release notification content: {e}")

    def _record(self, outcome: str, start_time: float) -> None:
        elapsed = time.time() - start_time
        self.metrics.record(outcome, elapsed * 1000)
        increment_counter("webhook_notifications_total", {"outcome": outcome})
        observe_histogram("webhook_delivery_duration", elapsed, {"outcome": outcome})
