"""
Service classes for notification delivery.
Store ownership and the default delivery policy, injected into the endpoint.
"""

import importlib
import threading
from collections.abc import Awaitable, Callable

from loguru import logger

from ..core.exceptions import (
    ConfigurationError,
    create_store_initialization_error,
    create_token_mismatch_error,
)
from ..subscriptions.models import invoke_callback
from ..subscriptions.store import SubscriptionStore
from .models import UnparsedNotification

StoreFactory = Callable[[], SubscriptionStore]
Deliverer = Callable[[UnparsedNotification, SubscriptionStore], Awaitable[bool]]


class SubscriptionStoreProvider:
    """
    Owns the process-wide subscription store.

    The store is created by ``factory`` on first use and shared afterwards.
    Racing first callers are serialized on a lock so the factory runs once.
    """

    def __init__(self, factory: StoreFactory):
        self._factory = factory
        self._store: SubscriptionStore | None = None
        self._lock = threading.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._store is not None

    def get_or_create(self) -> SubscriptionStore:
        """Return the shared store, creating it on first call."""
        store = self._store
        if store is not None:
            return store

        with self._lock:
            if self._store is None:
                logger.info("Creating subscription store")
                store = self._factory()
                if not isinstance(store, SubscriptionStore):
                    raise create_store_initialization_error(
                        repr(self._factory),
                        f"factory returned {type(store).__name__}, expected a SubscriptionStore",
                    )
                self._store = store
                logger.info(f"✅ Subscription store ready: {type(store).__name__}")
            return self._store

    def reset(self) -> None:
        """Drop the shared store so the next call creates a new one."""
        with self._lock:
            self._store = None


def load_store_factory(path: str) -> StoreFactory:
    """
    Resolve a store factory from a ``package.module:attribute`` path.

    Args:
        path: Import path of a zero-argument callable (usually a store class)

    Returns:
        The resolved callable

    Raises:
        ConfigurationError: If the path is malformed or cannot be imported
    """
    module_name, sep, attribute = path.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigurationError(
            message=f"Store factory must look like 'package.module:callable', got: {path}",
            error_code="INVALID_STORE_FACTORY",
            details={"store_factory": path},
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(
            message=f"Cannot import store factory module {module_name}: {e}",
            error_code="INVALID_STORE_FACTORY",
            details={"store_factory": path},
        ) from e

    factory = getattr(module, attribute, None)
    if factory is None or not callable(factory):
        raise ConfigurationError(
            message=f"{path} is not a callable store factory",
            error_code="INVALID_STORE_FACTORY",
            details={"store_factory": path},
        )
    return factory


async def deliver_notification(
    notification: UnparsedNotification, store: SubscriptionStore
) -> bool:
    """
    Route a notification to the callback of its subscription.

    Args:
        notification: Notification with its body still unread
        store: Store holding the target subscription

    Returns:
        True to keep the subscription, False to ask the sender to unsubscribe

    Raises:
        ClientTokenMismatchError: If the notification's client token is not the
            one registered with the subscription
    """
    subscription = store.get_subscription(notification.subscription_id)
    if subscription is None:
        logger.warning(
            f"Notification for unknown subscription {notification.subscription_id}"
        )
        return False

    if subscription.is_expired():
        logger.info(f"Subscription {subscription.subscription_id} expired, removing")
        store.remove_subscription(subscription)
        return False

    if not subscription.accepts_token(notification.client_token):
        raise create_token_mismatch_error(notification.subscription_id)

    await invoke_callback(subscription.callback, subscription, notification)
    return True
