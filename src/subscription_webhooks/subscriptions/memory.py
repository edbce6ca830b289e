"""
In-process subscription store.
"""

import threading

from loguru import logger

from .models import Subscription
from .store import SubscriptionStore


class MemorySubscriptionStore(SubscriptionStore):
    """Keeps subscriptions in a dict guarded by a lock. Lost on restart."""

    def __init__(self):
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = threading.Lock()
        logger.info("MemorySubscriptionStore initialized")

    def store_subscription(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions[subscription.subscription_id] = subscription
        logger.debug(f"Stored subscription {subscription.subscription_id}")

    def remove_subscription(self, subscription: Subscription) -> None:
        with self._lock:
            removed = self._subscriptions.pop(subscription.subscription_id, None)
        if removed is not None:
            logger.debug(f"Removed subscription {subscription.subscription_id}")

    def get_subscription(self, subscription_id: str) -> Subscription | None:
        with self._lock:
            return self._subscriptions.get(subscription_id)

    def list_subscriptions(self) -> list[Subscription]:
        with self._lock:
            return list(self._subscriptions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)
