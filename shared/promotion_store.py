"""
JSON-backed promotion store.

This module is the single source of truth for which promotion, if any, is
active. The hosted backend the storefront talks to is modelled as an in-memory
collection seeded from a JSON fixture, optionally flushed back to disk.

Design decisions:
- Lazy loading from data/promotions.json, like the rest of the fixtures
- Every mutation builds a complete new snapshot and swaps it in with one
  assignment, so readers see either the old or the new collection
- Writes are serialized by a lock; each commit bumps `version`, which callers
  can pass back as `expected_version` for compare-and-swap semantics
- No module-level instance: whoever builds the store owns it, and uses
  `clear()` / `reload()` to reset it
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from shared.errors import (
    ConcurrentModificationError,
    PromotionNotFoundError,
    StoreError,
    StoreUnavailableError,
)
from shared.models import Promotion

logger = logging.getLogger("promotion_store")

PROMOTIONS_FILE = "promotions.json"


class PromotionStore:
    """
    Collection of promotion records with an "at most one active" invariant.

    Example:
        store = PromotionStore(data_dir=Path("data"))

        store.fetch_active()           # -> Promotion or None
        store.activate_exclusive("promo-002")
        store.fetch_active().id        # -> "promo-002"
    """

    def __init__(self, data_dir: Optional[Path] = None, persist: bool = False):
        """
        Initialize the store.

        Args:
            data_dir: Directory containing promotions.json.
                     Defaults to ./data relative to project root.
            persist: Write every committed snapshot back to promotions.json.
        """
        if data_dir is None:
            data_dir = Path(__file__).parent.parent / "data"

        self.data_dir = Path(data_dir)
        self.persist = persist

        self._lock = threading.RLock()
        self._promotions: Optional[dict[str, Promotion]] = None
        self._version = 0

    # =========================================================================
    # Loading and persistence
    # =========================================================================

    @property
    def path(self) -> Path:
        return self.data_dir / PROMOTIONS_FILE

    def _load_json(self) -> list[dict]:
        """Load the promotions fixture; a missing file is an empty store."""
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreUnavailableError(f"Cannot read {self.path}: {e}") from e

    def _ensure_loaded(self) -> dict[str, Promotion]:
        with self._lock:
            if self._promotions is None:
                data = self._load_json()
                try:
                    promotions = {p["id"]: Promotion(**p) for p in data}
                except (KeyError, TypeError, ValidationError) as e:
                    raise StoreUnavailableError(f"Malformed promotion record in {self.path}: {e}") from e
                self._check_single_active(promotions)
                self._promotions = promotions
                logger.debug(f"Loaded {len(promotions)} promotions from {self.path}")
            return self._promotions

    def _flush(self, promotions: dict[str, Promotion]) -> None:
        records = [p.model_dump(mode="json") for p in sorted(promotions.values(), key=lambda p: p.id)]
        self.data_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".json.tmp")
        with open(tmp_path, "w") as f:
            json.dump(records, f, indent=2)
        tmp_path.replace(self.path)

    @staticmethod
    def _check_single_active(promotions: dict[str, Promotion]) -> None:
        active = [p.id for p in promotions.values() if p.is_active]
        if len(active) > 1:
            raise StoreError(f"More than one active promotion: {', '.join(sorted(active))}")

    def _commit(self, promotions: dict[str, Promotion], expected_version: Optional[int]) -> int:
        """
        Swap in a new snapshot. Caller must hold the lock.

        If flushing to disk fails, the previous snapshot stays in place.
        """
        if expected_version is not None and expected_version != self._version:
            raise ConcurrentModificationError(expected_version, self._version)

        self._check_single_active(promotions)

        if self.persist:
            try:
                self._flush(promotions)
            except OSError as e:
                logger.error(f"Failed to persist promotions to {self.path}: {e}")
                raise StoreError(f"Failed to persist promotions: {e}") from e

        self._promotions = promotions
        self._version += 1
        return self._version

    # =========================================================================
    # Reads
    # =========================================================================

    @property
    def lock(self):
        """
        Reentrant lock serializing writes.

        Hold it to read `version` together with your own commit, or to make a
        read-then-write sequence atomic.
        """
        return self._lock

    @property
    def version(self) -> int:
        """Token that changes on every committed mutation."""
        self._ensure_loaded()
        return self._version

    def fetch_active(self) -> Optional[Promotion]:
        """Get the active promotion, or None when every promotion is off."""
        promotions = self._ensure_loaded()
        return next((p for p in promotions.values() if p.is_active), None)

    def has_active(self) -> bool:
        """Cheap existence check used by the storefront banner."""
        promotions = self._ensure_loaded()
        return any(p.is_active for p in promotions.values())

    def list_all(self) -> list[Promotion]:
        """Get all promotions ordered by id (admin listing)."""
        promotions = self._ensure_loaded()
        return sorted(promotions.values(), key=lambda p: p.id)

    def get(self, promotion_id: str) -> Optional[Promotion]:
        """Get a promotion by ID."""
        return self._ensure_loaded().get(promotion_id)

    # =========================================================================
    # Writes
    # =========================================================================

    def write(self, promotion: Promotion, expected_version: Optional[int] = None) -> Promotion:
        """
        Insert or replace a single promotion record.

        Writing an active record deactivates every other record in the same
        commit, so the single-active invariant cannot be broken through here.
        """
        with self._lock:
            current = self._ensure_loaded()
            updated = dict(current)
            if promotion.is_active:
                for other_id, other in current.items():
                    if other_id != promotion.id and other.is_active:
                        updated[other_id] = other.model_copy(
                            update={"is_active": False, "updated_at": promotion.updated_at}
                        )
            updated[promotion.id] = promotion
            self._commit(updated, expected_version)

        logger.info(f"Wrote promotion {promotion.id} (active={promotion.is_active})")
        return promotion

    def activate_exclusive(
        self,
        promotion_id: Optional[str],
        expected_version: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Optional[Promotion]:
        """
        Make `promotion_id` the only active promotion in one transaction.

        Passing None turns every promotion off. Only records whose state
        actually changes get a new `updated_at`.

        Returns:
            The activated promotion, or None when deactivating everything.

        Raises:
            PromotionNotFoundError: promotion_id is not in the store
            ConcurrentModificationError: expected_version is stale
            StoreError: the new snapshot could not be persisted
        """
        now = now or datetime.now(timezone.utc)

        with self._lock:
            current = self._ensure_loaded()
            if promotion_id is not None and promotion_id not in current:
                raise PromotionNotFoundError(promotion_id)

            updated = {}
            for pid, promotion in current.items():
                should_be_active = pid == promotion_id
                if promotion.is_active != should_be_active:
                    promotion = promotion.model_copy(
                        update={"is_active": should_be_active, "updated_at": now}
                    )
                updated[pid] = promotion

            version = self._commit(updated, expected_version)

        if promotion_id is None:
            logger.info(f"All promotions deactivated (version {version})")
            return None
        logger.info(f"Promotion {promotion_id} is now the only active promotion (version {version})")
        return updated[promotion_id]

    def deactivate(
        self,
        promotion_id: str,
        expected_version: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Promotion:
        """Turn a single promotion off, leaving the others untouched."""
        now = now or datetime.now(timezone.utc)

        with self._lock:
            current = self._ensure_loaded()
            promotion = current.get(promotion_id)
            if promotion is None:
                raise PromotionNotFoundError(promotion_id)

            if promotion.is_active:
                promotion = promotion.model_copy(update={"is_active": False, "updated_at": now})
            updated = dict(current)
            updated[promotion_id] = promotion
            self._commit(updated, expected_version)

        logger.info(f"Promotion {promotion_id} deactivated")
        return promotion

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def clear(self) -> None:
        """Drop all in-memory state; the next read loads from disk again."""
        with self._lock:
            self._promotions = None
            self._version = 0

    def reload(self) -> None:
        """Clear and immediately re-read the fixture."""
        self.clear()
        self._ensure_loaded()
