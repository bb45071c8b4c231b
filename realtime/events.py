"""
Change events published on the promotions topic.

Events are named in past tense and carry just enough context for logging.
Subscribers treat every event as "the collection changed, refetch"; they
never apply the payload as a delta.
"""

from typing import Optional

from realtime.change_notifier import Event


PROMOTIONS_TOPIC = "promotions"


class EventTypes:
    """Constants for event type names."""
    PROMOTION_ACTIVATED = "PromotionActivated"
    PROMOTION_DEACTIVATED = "PromotionDeactivated"
    PROMOTIONS_DEACTIVATED = "PromotionsDeactivated"
    PROMOTION_WRITTEN = "PromotionWritten"


def promotion_activated(
    promotion_id: str,
    version: Optional[int] = None,
    source: str = "activation-controller",
) -> Event:
    """Published after a promotion became the only active one."""
    return Event(
        topic=PROMOTIONS_TOPIC,
        event_type=EventTypes.PROMOTION_ACTIVATED,
        source=source,
        payload={"promotion_id": promotion_id, "version": version},
    )


def promotion_deactivated(
    promotion_id: str,
    version: Optional[int] = None,
    source: str = "activation-controller",
) -> Event:
    """Published after a single promotion was switched off."""
    return Event(
        topic=PROMOTIONS_TOPIC,
        event_type=EventTypes.PROMOTION_DEACTIVATED,
        source=source,
        payload={"promotion_id": promotion_id, "version": version},
    )


def promotions_deactivated(
    version: Optional[int] = None,
    source: str = "activation-controller",
) -> Event:
    """Published after every promotion was switched off."""
    return Event(
        topic=PROMOTIONS_TOPIC,
        event_type=EventTypes.PROMOTIONS_DEACTIVATED,
        source=source,
        payload={"version": version},
    )


def promotion_written(
    promotion_id: str,
    version: Optional[int] = None,
    source: str = "activation-controller",
) -> Event:
    """Published after a promotion record was created or edited."""
    return Event(
        topic=PROMOTIONS_TOPIC,
        event_type=EventTypes.PROMOTION_WRITTEN,
        source=source,
        payload={"promotion_id": promotion_id, "version": version},
    )
