"""
Subscription WebHooks: receives push notifications for subscriptions.
"""

__version__ = "1.0.0"
