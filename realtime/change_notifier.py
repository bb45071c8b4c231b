"""
In-memory change notifier for the promotion collection.

Storefront viewers subscribe to a topic and get told whenever the collection
behind it changes. In production this is the hosted backend's realtime channel
(a push subscription keyed to the `promotions` table); here it is an in-process
pub/sub.

Design decisions:
- Synchronous delivery in the publisher's thread; subscribers that need to do
  I/O hand the work off themselves
- Topic-based subscriptions; "*" receives everything
- Coarse-grained: an event says THAT something changed, not a diff
- `subscribe()` returns a Subscription handle whose `close()` is idempotent
- Thread-safe subscribe/unsubscribe; publish iterates over a snapshot
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import uuid4

logger = logging.getLogger("change_notifier")

ALL_TOPICS = "*"


@dataclass
class Event:
    """
    A change signal delivered to subscribers.

    Attributes:
        topic: Channel the event is published on (e.g. "promotions")
        event_type: What kind of change happened (informational only)
        source: Which component published the event
        payload: Small amount of context; subscribers must not rely on it
        event_id: Unique identifier for this event instance
        timestamp: When the event was published
    """
    topic: str
    event_type: str
    source: str
    payload: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return f"Event({self.topic}/{self.event_type}, id={self.event_id[:8]}, source={self.source})"


# Type alias for change handler functions
ChangeHandler = Callable[[Event], None]


class Subscription:
    """
    Handle returned by ChangeNotifier.subscribe().

    Closing it stops delivery. Closing twice is harmless.
    """

    def __init__(self, notifier: "ChangeNotifier", topic: str, handler: ChangeHandler):
        self._notifier = notifier
        self.topic = topic
        self.handler = handler
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._notifier._remove(self)

    # The storefront code calls it unsubscribe, like the realtime channel API
    unsubscribe = close

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ChangeNotifier:
    """
    Simple in-memory pub/sub for collection change signals.

    Example usage:
        notifier = ChangeNotifier()

        subscription = notifier.subscribe("promotions", lambda event: refetch())

        notifier.publish(Event(
            topic="promotions",
            event_type="PromotionsChanged",
            source="activation-controller",
        ))

        subscription.close()
    """

    def __init__(self):
        """Initialize the notifier with empty subscriber lists."""
        self._lock = threading.Lock()
        # Map of topic -> list of subscriptions
        self._subscribers: dict[str, list[Subscription]] = defaultdict(list)

        self._event_log: list[Event] = []
        self._log_events: bool = True

    def subscribe(self, topic: str, handler: ChangeHandler) -> Subscription:
        """
        Subscribe to change signals on a topic.

        Args:
            topic: The topic to subscribe to (e.g., "promotions")
            handler: Called once per published event on that topic

        Returns:
            Subscription handle; call close() to stop receiving events.
        """
        subscription = Subscription(self, topic, handler)
        with self._lock:
            self._subscribers[topic].append(subscription)
        logger.debug(f"Subscribed handler to '{topic}'")
        return subscription

    def subscribe_all(self, handler: ChangeHandler) -> Subscription:
        """Subscribe to every topic (useful for logging or audit)."""
        return self.subscribe(ALL_TOPICS, handler)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            try:
                self._subscribers[subscription.topic].remove(subscription)
            except ValueError:
                return
        logger.debug(f"Unsubscribed handler from '{subscription.topic}'")

    def publish(self, event: Event) -> int:
        """
        Publish an event to all subscribers of its topic.

        Returns:
            Number of handlers that received the event

        Handlers are called synchronously in the order they subscribed.
        If a handler raises an exception, it's logged but doesn't stop other handlers.
        """
        with self._lock:
            if self._log_events:
                self._event_log.append(event)
            subscriptions = list(self._subscribers.get(event.topic, []))
            subscriptions += self._subscribers.get(ALL_TOPICS, [])

        logger.info(f"Publishing: {event}")

        handlers_called = 0
        for subscription in subscriptions:
            if subscription.closed:
                continue
            handlers_called += 1
            try:
                subscription.handler(event)
            except Exception as e:
                logger.error(f"Handler raised exception for {event}: {e}")

        if handlers_called == 0:
            logger.debug(f"No subscribers for topic '{event.topic}'")

        return handlers_called

    def get_subscriber_count(self, topic: str) -> int:
        """Get the number of open subscriptions for a topic."""
        with self._lock:
            return len(self._subscribers.get(topic, []))

    def get_event_log(self) -> list[Event]:
        """Get the log of all published events."""
        with self._lock:
            return self._event_log.copy()

    def clear_event_log(self) -> None:
        with self._lock:
            self._event_log.clear()

    def clear_subscribers(self) -> None:
        """Remove all subscribers (useful for testing)."""
        with self._lock:
            subscriptions = [s for subs in self._subscribers.values() for s in subs]
            self._subscribers.clear()
        for subscription in subscriptions:
            subscription._closed = True

    def set_logging(self, enabled: bool) -> None:
        """Enable or disable the event log."""
        self._log_events = enabled
