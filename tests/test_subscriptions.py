import threading
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from subscription_webhooks.core.exceptions import (
    ClientTokenMismatchError,
    NotificationContentClosedError,
)
from subscription_webhooks.subscriptions import (
    MemorySubscriptionStore,
    NotificationCallback,
    Subscription,
)
from subscription_webhooks.webhooks.models import (
    DeliveryMetrics,
    NotificationContent,
    UnparsedNotification,
)
from subscription_webhooks.webhooks.services import deliver_notification


def make_notification(
    subscription_id: str = "sub-1", client_token: str | None = "token", body: bytes = b"{}"
) -> UnparsedNotification:
    return UnparsedNotification(
        subscription_id=subscription_id,
        topic_id="topic-1",
        topic_uri="https://example.com/topics/1",
        client_token=client_token,
        event_type="updated",
        content_type="application/json",
        content=NotificationContent.from_bytes(body),
    )


class RecordingCallback(NotificationCallback):
    def __init__(self):
        self.notifications = []

    def handle_notification(self, subscription, notification):
        self.notifications.append((subscription, notification))


class TestSubscription:
    """Test subscription model rules."""

    def test_no_expiry_never_expires(self) -> None:
        subscription = Subscription(subscription_id="sub-1", callback=Mock())
        assert not subscription.is_expired()

    def test_expiry(self) -> None:
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        subscription = Subscription(
            subscription_id="sub-1", expires_at=now + timedelta(hours=1), callback=Mock()
        )

        assert not subscription.is_expired(now)
        assert subscription.is_expired(now + timedelta(hours=1))

    def test_naive_expiry_is_utc(self) -> None:
        subscription = Subscription(
            subscription_id="sub-1", expires_at=datetime(2000, 1, 1), callback=Mock()
        )
        assert subscription.expires_at.tzinfo is timezone.utc
        assert subscription.is_expired()

    @pytest.mark.parametrize(
        "expected,received,accepted",
        [
            (None, None, True),
            (None, "anything", True),
            ("", "anything", True),
            ("token", "token", True),
            ("token", "other", False),
            ("token", None, False),
        ],
    )
    def test_accepts_token(self, expected, received, accepted) -> None:
        subscription = Subscription(
            subscription_id="sub-1", client_token=expected, callback=Mock()
        )
        assert subscription.accepts_token(received) is accepted

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValueError):
            Subscription(subscription_id="  ", callback=Mock())


class TestMemorySubscriptionStore:
    """Test the in-process subscription store."""

    def test_store_and_get(self) -> None:
        store = MemorySubscriptionStore()
        subscription = Subscription(subscription_id="sub-1", callback=Mock())

        store.store_subscription(subscription)

        assert store.get_subscription("sub-1") is subscription
        assert store.get_subscription("sub-2") is None
        assert store.list_subscriptions() == [subscription]

    def test_store_replaces(self) -> None:
        store = MemorySubscriptionStore()
        store.store_subscription(Subscription(subscription_id="sub-1", callback=Mock()))
        replacement = Subscription(subscription_id="sub-1", topic_id="t", callback=Mock())

        store.store_subscription(replacement)

        assert len(store) == 1
        assert store.get_subscription("sub-1") is replacement

    def test_remove(self) -> None:
        store = MemorySubscriptionStore()
        subscription = Subscription(subscription_id="sub-1", callback=Mock())
        store.store_subscription(subscription)

        store.remove_subscription(subscription)
        store.remove_subscription(subscription)

        assert store.get_subscription("sub-1") is None
        assert len(store) == 0


class TestNotificationContent:
    """Test the lazily read notification body."""

    @pytest.mark.asyncio
    async def test_read(self) -> None:
        content = NotificationContent.from_bytes(b"payload")
        assert await content.read() == b"payload"

    @pytest.mark.asyncio
    async def test_chunks_are_joined(self) -> None:
        async def chunks():
            yield b"a"
            yield b""
            yield b"bc"

        content = NotificationContent(chunks())
        assert [chunk async for chunk in content.iter_bytes()] == [b"a", b"bc"]

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        content = NotificationContent.from_bytes(b"payload")

        await content.aclose()
        await content.aclose()

        assert content.closed

    @pytest.mark.asyncio
    async def test_read_after_close(self) -> None:
        content = NotificationContent.from_bytes(b"payload")
        await content.aclose()

        with pytest.raises(NotificationContentClosedError):
            await content.read()

    def test_empty_optional_headers_normalized(self) -> None:
        notification = UnparsedNotification(
            subscription_id="sub-1",
            topic_id="t",
            topic_uri="u",
            client_token="",
            event_type="e",
            content_type="",
            content=NotificationContent.from_bytes(b""),
        )
        assert notification.client_token is None
        assert notification.content_type is None


class TestDeliverNotification:
    """Test the default delivery policy."""

    @pytest.fixture
    def store(self) -> MemorySubscriptionStore:
        return MemorySubscriptionStore()

    @pytest.mark.asyncio
    async def test_unknown_subscription(self, store) -> None:
        assert await deliver_notification(make_notification(), store) is False

    @pytest.mark.asyncio
    async def test_delivers_to_callback(self, store) -> None:
        callback = RecordingCallback()
        subscription = Subscription(
            subscription_id="sub-1", client_token="token", callback=callback
        )
        store.store_subscription(subscription)
        notification = make_notification()

        assert await deliver_notification(notification, store) is True
        assert callback.notifications == [(subscription, notification)]

    @pytest.mark.asyncio
    async def test_async_callback(self, store) -> None:
        bodies = []

        async def callback(subscription, notification):
            bodies.append(await notification.content.read())

        store.store_subscription(Subscription(subscription_id="sub-1", callback=callback))

        assert await deliver_notification(make_notification(body=b"hello"), store) is True
        assert bodies == [b"hello"]

    @pytest.mark.asyncio
    async def test_sync_callback_runs_off_event_loop(self, store) -> None:
        loop_thread = threading.get_ident()
        callback_threads = []
        store.store_subscription(
            Subscription(
                subscription_id="sub-1",
                callback=lambda subscription, notification: callback_threads.append(
                    threading.get_ident()
                ),
            )
        )

        assert await deliver_notification(make_notification(), store) is True
        assert len(callback_threads) == 1
        assert callback_threads[0] != loop_thread

    @pytest.mark.asyncio
    async def test_async_notification_callback_runs_on_event_loop(self, store) -> None:
        loop_thread = threading.get_ident()
        callback_threads = []

        class AsyncCallback(NotificationCallback):
            async def handle_notification(self, subscription, notification):
                callback_threads.append(threading.get_ident())

        store.store_subscription(Subscription(subscription_id="sub-1", callback=AsyncCallback()))

        assert await deliver_notification(make_notification(), store) is True
        assert callback_threads == [loop_thread]

    @pytest.mark.asyncio
    async def test_expired_subscription_removed(self, store) -> None:
        callback = Mock()
        store.store_subscription(
            Subscription(
                subscription_id="sub-1",
                expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
                callback=callback,
            )
        )

        assert await deliver_notification(make_notification(), store) is False
        assert store.get_subscription("sub-1") is None
        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_token_mismatch(self, store) -> None:
        callback = Mock()
        store.store_subscription(
            Subscription(subscription_id="sub-1", client_token="expected", callback=callback)
        )

        with pytest.raises(ClientTokenMismatchError):
            await deliver_notification(make_notification(client_token="forged"), store)
        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_callback_fault_propagates(self, store) -> None:
        store.store_subscription(
            Subscription(subscription_id="sub-1", callback=Mock(side_effect=OSError("boom")))
        )

        with pytest.raises(OSError, match="boom"):
            await deliver_notification(make_notification(), store)


class TestDeliveryMetrics:
    """Test the running delivery counters."""

    def test_average_ignores_rejected_requests(self) -> None:
        metrics = DeliveryMetrics()

        metrics.record("delivered", 10.0)
        metrics.record("rejected")
        metrics.record("rejected")
        metrics.record("failed", 30.0)

        snapshot = metrics.snapshot()
        assert snapshot["total_notifications"] == 4
        assert snapshot["rejected"] == 2
        assert snapshot["average_processing_time_ms"] == pytest.approx(20.0)

    def test_only_rejections_leave_average_unset(self) -> None:
        metrics = DeliveryMetrics()

        metrics.record("rejected")

        assert metrics.average_processing_time_ms == 0.0
        assert metrics.last_notification_time is not None

    def test_unknown_outcome_ignored(self) -> None:
        metrics = DeliveryMetrics()

        metrics.record("lost", 5.0)

        assert metrics.total_notifications == 0
