"""
Realtime change notification for the promotion collection.

The admin side publishes a coarse "promotions changed" signal after each
successful write; every storefront viewer subscribed to the topic refetches.
"""

from realtime.change_notifier import ChangeNotifier, Event, Subscription
from realtime.events import PROMOTIONS_TOPIC, EventTypes

__all__ = [
    "ChangeNotifier",
    "Event",
    "Subscription",
    "PROMOTIONS_TOPIC",
    "EventTypes",
]
