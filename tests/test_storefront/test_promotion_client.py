"""
Tests for the per-viewer PromotionClient.

These tests verify that a viewer's client follows activation changes, fails
open when the store is slow or broken, and never applies a superseded fetch.
The async tests drive their own event loop with asyncio.run.
"""

import asyncio
import logging
import threading
import time
from decimal import Decimal
from typing import Optional

from realtime.events import PROMOTIONS_TOPIC, promotions_deactivated
from shared.errors import StoreUnavailableError
from shared.models import CartLine, Promotion
from shared.promotion_store import PromotionStore
from storefront.promotion_client import ClientState, PromotionClient


CART = [
    CartLine(product_id="a", unit_price=Decimal("100"), list_price=Decimal("100"), quantity=1),
    CartLine(product_id="b", unit_price=Decimal("200"), list_price=Decimal("200"), quantity=1),
    CartLine(product_id="c", unit_price=Decimal("300"), list_price=Decimal("300"), quantity=1),
]

PROMO_A = Promotion(id="promo-a", name="A", is_active=True)
PROMO_B = Promotion(id="promo-b", name="B", is_active=True)


async def eventually(predicate, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


class ScriptedStore(PromotionStore):
    """
    Store whose fetch_active answers come from a script.

    Each entry is (gate, value): the call blocks until `gate` is set (if
    given), then returns `value` or raises it if it is an exception.
    """

    def __init__(self, script):
        super().__init__()
        self.script = list(script)
        self.calls = 0
        self._script_lock = threading.Lock()

    def fetch_active(self) -> Optional[Promotion]:
        with self._script_lock:
            gate, value = self.script.pop(0)
            self.calls += 1
        if gate is not None:
            gate.wait(timeout=5)
        if isinstance(value, Exception):
            raise value
        return value


class TestLifecycle:
    """Start, resolve and close."""

    def test_starts_loading_then_resolves(self, store, notifier, active_promotion_id):
        async def scenario():
            client = PromotionClient(store, notifier)
            assert client.state is ClientState.LOADING
            assert client.get_active_promotion() is None

            await client.start()

            assert client.state is ClientState.RESOLVED
            assert client.get_active_promotion().id == active_promotion_id
            assert client.has_active_promotion() is True
            client.close()

        asyncio.run(scenario())

    def test_close_unsubscribes_and_is_idempotent(self, store, notifier):
        async def scenario():
            client = await PromotionClient(store, notifier).start()
            assert notifier.get_subscriber_count(PROMOTIONS_TOPIC) == 1

            client.close()
            client.close()

            assert notifier.get_subscriber_count(PROMOTIONS_TOPIC) == 0

        asyncio.run(scenario())

    def test_context_manager(self, store, notifier):
        async def scenario():
            async with PromotionClient(store, notifier) as client:
                assert client.state is ClientState.RESOLVED
            assert notifier.get_subscriber_count(PROMOTIONS_TOPIC) == 0

        asyncio.run(scenario())

    def test_price_uses_known_promotion(self, store, notifier):
        async def scenario():
            async with PromotionClient(store, notifier) as client:
                return client.price(CART)

        result = asyncio.run(scenario())

        assert result.is_active is True
        assert result.final_total == Decimal("500")


class TestFollowsChanges:
    """The client refetches on every change signal."""

    def test_deactivation_reaches_client(self, store, notifier, controller):
        async def scenario():
            async with PromotionClient(store, notifier) as client:
                controller.deactivate_all()
                await client.wait_until_resolved()

                assert client.has_active_promotion() is False
                assert client.price(CART).final_total == Decimal("600")

        asyncio.run(scenario())

    def test_activation_reaches_client(self, store, notifier, controller, weekend_promotion_id):
        async def scenario():
            async with PromotionClient(store, notifier) as client:
                controller.set_active(weekend_promotion_id)
                return await client.wait_until_resolved()

        promotion = asyncio.run(scenario())

        assert promotion.id == weekend_promotion_id

    def test_many_clients_follow_one_change(self, store, notifier, controller):
        async def scenario():
            clients = [await PromotionClient(store, notifier).start() for _ in range(5)]
            controller.deactivate_all()
            for client in clients:
                await client.wait_until_resolved()
            states = [client.has_active_promotion() for client in clients]
            for client in clients:
                client.close()
            return states

        assert asyncio.run(scenario()) == [False] * 5

    def test_change_published_from_another_thread(self, store, notifier, controller, weekend_promotion_id):
        async def scenario():
            async with PromotionClient(store, notifier) as client:
                await asyncio.to_thread(controller.set_active, weekend_promotion_id)
                await eventually(
                    lambda: client.state is ClientState.RESOLVED
                    and client.get_active_promotion().id == weekend_promotion_id
                )

        asyncio.run(scenario())

    def test_closed_client_ignores_changes(self, notifier):
        store = ScriptedStore([(None, PROMO_A)])

        async def scenario():
            client = await PromotionClient(store, notifier).start()
            client.close()
            notifier.publish(promotions_deactivated())
            await asyncio.sleep(0.01)
            return client

        client = asyncio.run(scenario())

        assert store.calls == 1
        assert client.get_active_promotion() == PROMO_A

    def test_abandoned_client_unsubscribes(self, store, notifier, caplog):
        """Test that a client whose loop ended without close() stops listening."""
        async def scenario():
            return await PromotionClient(store, notifier).start()

        asyncio.run(scenario())
        assert notifier.get_subscriber_count(PROMOTIONS_TOPIC) == 1

        with caplog.at_level(logging.WARNING):
            first = notifier.publish(promotions_deactivated())
            second = notifier.publish(promotions_deactivated())

        assert first == 1
        assert second == 0
        assert notifier.get_subscriber_count(PROMOTIONS_TOPIC) == 0
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]


class TestFailOpen:
    """A slow or broken store means "no promotion", never a blocked cart."""

    def test_store_error_fails_open(self, notifier):
        store = ScriptedStore([(None, StoreUnavailableError("backend down"))])

        async def scenario():
            async with PromotionClient(store, notifier) as client:
                return client.state, client.has_active_promotion(), client.price(CART)

        state, has_active, result = asyncio.run(scenario())

        assert state is ClientState.RESOLVED
        assert has_active is False
        assert result.is_active is False
        assert result.final_total == Decimal("600")

    def test_timeout_fails_open(self, notifier):
        gate = threading.Event()
        store = ScriptedStore([(gate, PROMO_A)])

        async def scenario():
            client = PromotionClient(store, notifier, fetch_timeout=0.05)
            try:
                await client.start()
                return client.state, client.get_active_promotion()
            finally:
                client.close()
                gate.set()

        state, promotion = asyncio.run(scenario())

        assert state is ClientState.RESOLVED
        assert promotion is None


class TestSupersededFetches:
    """Only the latest fetch may update the client."""

    def test_newer_change_wins_over_slow_fetch(self, notifier):
        slow_gate = threading.Event()
        store = ScriptedStore([
            (None, PROMO_A),        # initial fetch
            (slow_gate, PROMO_B),   # slow fetch, superseded
            (None, None),           # latest fetch: nothing active
        ])

        async def scenario():
            async with PromotionClient(store, notifier) as client:
                notifier.publish(promotions_deactivated())
                await eventually(lambda: store.calls == 2)

                # Previous answer stays visible while the refetch is pending
                assert client.state is ClientState.LOADING
                assert client.get_active_promotion() == PROMO_A

                notifier.publish(promotions_deactivated())
                latest = await client.wait_until_resolved()

                slow_gate.set()
                await asyncio.sleep(0.05)
                return latest, client.get_active_promotion()

        latest, final = asyncio.run(scenario())

        assert latest is None
        assert final is None

    def test_refresh_refetches(self, notifier):
        store = ScriptedStore([(None, PROMO_A), (None, PROMO_B)])

        async def scenario():
            async with PromotionClient(store, notifier) as client:
                client.refresh()
                return await client.wait_until_resolved()

        assert asyncio.run(scenario()) == PROMO_B
