"""
Per-viewer promotion client.

Each storefront viewer (cart page, checkout page, home-page banner) owns one
client. It remembers the last-known active promotion, refetches it whenever
the change notifier says the promotion collection changed, and hands it to
the pricing engine on every cart change.

Design decisions:
- asyncio-based; the store lookup runs in a worker thread so a slow backend
  never blocks the viewer's event loop
- Change events may arrive on any thread; they are handed to the client's
  loop with call_soon_threadsafe
- A newer event supersedes a pending fetch: the older task is cancelled and
  a generation counter discards anything it still manages to return
- Fail open: a fetch that errors or times out means "no active promotion",
  so checkout is never blocked by a promotion lookup
- Read-only: the client never writes to the store
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Iterable, Optional, Union

from realtime.change_notifier import ChangeNotifier, Event, Subscription
from realtime.events import PROMOTIONS_TOPIC
from shared.errors import StoreError
from shared.models import CartLine, PricingResult, Promotion
from shared.promotion_store import PromotionStore
from storefront.pricing import compute_pricing

logger = logging.getLogger("promotion_client")

DEFAULT_FETCH_TIMEOUT = 2.0


class ClientState(str, Enum):
    """Whether the client is waiting on a fetch or has an answer."""
    LOADING = "LOADING"
    RESOLVED = "RESOLVED"


class PromotionClient:
    """
    Holds the active promotion for one viewer and keeps it fresh.

    Example:
        async with PromotionClient(store, notifier) as client:
            result = client.price(cart_lines)
            if client.has_active_promotion():
                show_banner()
    """

    def __init__(
        self,
        store: PromotionStore,
        notifier: ChangeNotifier,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        topic: str = PROMOTIONS_TOPIC,
    ):
        """
        Initialize the client. Nothing is fetched until start().

        Args:
            store: Store to read the active promotion from
            notifier: Notifier to subscribe to for change signals
            fetch_timeout: Seconds before a fetch fails open
            topic: Notifier topic carrying promotion changes
        """
        self.store = store
        self.notifier = notifier
        self.fetch_timeout = fetch_timeout
        self.topic = topic

        self._active: Optional[Promotion] = None
        self._state = ClientState.LOADING
        self._generation = 0
        self._pending: Optional[asyncio.Task] = None
        self._resolved = asyncio.Event()
        self._subscription: Optional[Subscription] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> "PromotionClient":
        """Subscribe to changes and resolve the active promotion once."""
        if self._subscription is not None:
            logger.warning("PromotionClient already started")
            return self
        self._loop = asyncio.get_running_loop()
        self._subscription = self.notifier.subscribe(self.topic, self._on_change)
        self._schedule_refresh()
        await self.wait_until_resolved()
        return self

    def close(self) -> None:
        """Unsubscribe and cancel any in-flight fetch. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            self._subscription.close()
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        # Wake anyone still waiting on the cancelled fetch
        self._resolved.set()
        logger.debug("PromotionClient closed")

    async def __aenter__(self) -> "PromotionClient":
        return await self.start()

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    # =========================================================================
    # Refreshing
    # =========================================================================

    def _on_change(self, event: Event) -> None:
        """Notifier callback; may run on any thread."""
        if self._closed or self._loop is None:
            return
        logger.debug(f"Change signal received: {event}")
        try:
            running_loop = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None
        if running_loop is self._loop:
            self._schedule_refresh()
            return
        try:
            self._loop.call_soon_threadsafe(self._schedule_refresh)
        except RuntimeError:
            # The viewer's loop closed without close(); stop listening
            logger.warning("Event loop closed under an open PromotionClient; unsubscribing")
            self._closed = True
            self._subscription.close()

    def _schedule_refresh(self) -> None:
        if self._closed:
            return
        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._state = ClientState.LOADING
        self._resolved.clear()
        self._pending = asyncio.ensure_future(self._refresh(self._generation))

    async def _fetch(self) -> Optional[Promotion]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.store.fetch_active),
                timeout=self.fetch_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Active promotion lookup timed out after {self.fetch_timeout}s; "
                f"pricing without promotion"
            )
        except StoreError as e:
            logger.warning(f"Active promotion lookup failed: {e}; pricing without promotion")
        except Exception as e:
            logger.error(f"Unexpected error looking up active promotion: {e}")
        return None

    async def _refresh(self, generation: int) -> None:
        promotion = await self._fetch()
        if generation != self._generation or self._closed:
            logger.debug(f"Discarding stale promotion fetch (generation {generation})")
            return
        self._active = promotion
        self._state = ClientState.RESOLVED
        self._resolved.set()
        if promotion is not None:
            logger.info(f"Active promotion: {promotion.id} ({promotion.name})")
        else:
            logger.info("No active promotion")

    def refresh(self) -> None:
        """Force a refetch, as a change signal would."""
        self._schedule_refresh()

    async def wait_until_resolved(self) -> Optional[Promotion]:
        """Wait for the latest fetch to land and return its result."""
        await self._resolved.wait()
        return self._active

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def state(self) -> ClientState:
        return self._state

    def get_active_promotion(self) -> Optional[Promotion]:
        """
        Last-known active promotion, or None when none is active.

        While a refetch is in flight this keeps returning the previous answer,
        so a cart never flickers between promotional and full prices.
        """
        return self._active

    def has_active_promotion(self) -> bool:
        return self.get_active_promotion() is not None

    def price(self, cart_lines: Iterable[Union[CartLine, dict[str, Any]]]) -> PricingResult:
        """Price a cart with whatever promotion is currently known."""
        return compute_pricing(cart_lines, self.get_active_promotion())
