"""
Subscriptions and the stores that hold them.
"""

from .memory import MemorySubscriptionStore
from .models import NotificationCallback, Subscription
from .store import SubscriptionStore

__all__ = [
    "MemorySubscriptionStore",
    "NotificationCallback",
    "Subscription",
    "SubscriptionStore",
]
