"""
Subscription store contract.
"""

from abc import ABC, abstractmethod

from .models import Subscription


class SubscriptionStore(ABC):
    """
    Stores subscriptions so incoming notifications can be routed to them.

    A deployment supplies one implementation; the webhook endpoint creates it
    once per process and shares it across requests, so implementations must
    be safe for concurrent use.
    """

    @abstractmethod
    def store_subscription(self, subscription: Subscription) -> None:
        """Insert or replace a subscription."""

    @abstractmethod
    def remove_subscription(self, subscription: Subscription) -> None:
        """Remove a subscription. Removing an unknown subscription is a no-op."""

    @abstractmethod
    def get_subscription(self, subscription_id: str) -> Subscription | None:
        """Return the subscription with ``subscription_id`` or ``None``."""

    @abstractmethod
    def list_subscriptions(self) -> list[Subscription]:
        """Return all stored subscriptions."""
