"""
Activation controller for the admin panel.

This is the only component that mutates promotions. It turns promotions on and
off for an operator, keeps "at most one active promotion" true, and publishes
a change signal once the write has committed.

Key points:
- Activation is one transactional store write (deactivate others + activate
  target + stamp updated_at), not two independent updates
- Nothing is published if the write fails; the failure is raised to the
  operator as ActivationError
- Callers may pass the store version they last saw as `expected_version` to
  refuse acting on a stale admin screen
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from realtime.change_notifier import ChangeNotifier, Event
from realtime.events import (
    promotion_activated,
    promotion_deactivated,
    promotion_written,
    promotions_deactivated,
)
from shared.errors import ActivationError, StoreError
from shared.models import Promotion
from shared.promotion_store import PromotionStore

logger = logging.getLogger("activation_controller")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ActivationController:
    """
    Operator-facing promotion switchboard.

    Example:
        controller = ActivationController(store, notifier)

        controller.set_active("promo-002")   # promo-002 on, everything else off
        controller.deactivate_all()          # everything off

        # Every PromotionClient subscribed to the notifier refetches.
    """

    def __init__(
        self,
        store: PromotionStore,
        notifier: ChangeNotifier,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize the controller.

        Args:
            store: Promotion store to write to
            notifier: Notifier to publish change signals on
            clock: Source of `updated_at` timestamps
        """
        self.store = store
        self.notifier = notifier
        self.clock = clock

    def _after_commit(self, event: Event) -> None:
        self.notifier.publish(event)

    def _write(self, action: str, operation: Callable[..., Any], *args, **kwargs) -> tuple[Any, int]:
        """
        Run one store write and return its result with the version it committed.

        The version is read under the store lock, so a concurrent write cannot
        slip in between the commit and the read.
        """
        try:
            with self.store.lock:
                result = operation(*args, **kwargs)
                return result, self.store.version
        except StoreError as e:
            logger.error(f"Failed to {action}: {e}")
            raise ActivationError(f"Could not {action}: {e}", cause=e) from e

    def _activate(self, promotion_id: str, expected_version: Optional[int]) -> tuple[Promotion, Event]:
        promotion, version = self._write(
            f"activate promotion {promotion_id}",
            self.store.activate_exclusive,
            promotion_id,
            expected_version=expected_version,
            now=self.clock(),
        )
        return promotion, promotion_activated(promotion_id, version=version)

    def _deactivate(self, promotion_id: str, expected_version: Optional[int]) -> tuple[Promotion, Event]:
        promotion, version = self._write(
            f"deactivate promotion {promotion_id}",
            self.store.deactivate,
            promotion_id,
            expected_version=expected_version,
            now=self.clock(),
        )
        return promotion, promotion_deactivated(promotion_id, version=version)

    def set_active(self, promotion_id: str, expected_version: Optional[int] = None) -> Promotion:
        """
        Make a promotion the single active promotion.

        Raises:
            PromotionNotFoundError: Unknown promotion id
            ActivationError: The store write failed (nothing was published)
        """
        logger.info(f"Activating promotion {promotion_id}")
        promotion, event = self._activate(promotion_id, expected_version)
        self._after_commit(event)
        return promotion

    def deactivate_all(self, expected_version: Optional[int] = None) -> None:
        """Turn every promotion off."""
        logger.info("Deactivating all promotions")
        _, version = self._write(
            "deactivate promotions",
            self.store.activate_exclusive,
            None,
            expected_version=expected_version,
            now=self.clock(),
        )
        self._after_commit(promotions_deactivated(version=version))

    def deactivate(self, promotion_id: str, expected_version: Optional[int] = None) -> Promotion:
        """Turn a single promotion off."""
        logger.info(f"Deactivating promotion {promotion_id}")
        promotion, event = self._deactivate(promotion_id, expected_version)
        self._after_commit(event)
        return promotion

    def toggle(self, promotion_id: str, expected_version: Optional[int] = None) -> Promotion:
        """
        Flip a promotion, as the admin panel's on/off button does.

        An inactive promotion becomes the single active one; an active one is
        switched off. The read and the write happen under one store lock.
        """
        logger.info(f"Toggling promotion {promotion_id}")
        with self.store.lock:
            try:
                current = self.store.get(promotion_id)
            except StoreError as e:
                logger.error(f"Failed to read promotion {promotion_id}: {e}")
                raise ActivationError(f"Could not toggle promotion {promotion_id}: {e}", cause=e) from e

            if current is not None and current.is_active:
                promotion, event = self._deactivate(promotion_id, expected_version)
            else:
                promotion, event = self._activate(promotion_id, expected_version)

        self._after_commit(event)
        return promotion

    def save(self, promotion: Promotion, expected_version: Optional[int] = None) -> Promotion:
        """
        Create or edit a promotion record.

        Saving an active record deactivates the others in the same write.
        """
        promotion = promotion.model_copy(update={"updated_at": self.clock()})
        _, version = self._write(
            f"save promotion {promotion.id}",
            self.store.write,
            promotion,
            expected_version=expected_version,
        )
        self._after_commit(promotion_written(promotion.id, version=version))
        return promotion
