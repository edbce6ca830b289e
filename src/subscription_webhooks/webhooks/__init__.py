"""
Webhook endpoint receiving subscription notifications.
"""

from .endpoint import NotificationEndpoint
from .models import NotificationContent, SubscriptionHeaders, UnparsedNotification
from .services import SubscriptionStoreProvider, deliver_notification

__all__ = [
    "NotificationContent",
    "NotificationEndpoint",
    "SubscriptionHeaders",
    "SubscriptionStoreProvider",
    "UnparsedNotification",
    "deliver_notification",
]
