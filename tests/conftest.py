"""
Shared pytest fixtures for the storefront promotion tests.

These fixtures provide consistent test data and fresh state for every test.
"""

import shutil
from pathlib import Path

import pytest

from admin.activation import ActivationController
from realtime.change_notifier import ChangeNotifier
from shared.promotion_store import PromotionStore


FIXTURE_DIR = Path(__file__).parent.parent / "data"


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """
    Private copy of the fixture data directory.

    Tests that persist writes must not touch the real fixtures.
    """
    target = tmp_path / "data"
    target.mkdir()
    shutil.copy(FIXTURE_DIR / "promotions.json", target / "promotions.json")
    return target


@pytest.fixture
def store(data_dir: Path) -> PromotionStore:
    """Fresh PromotionStore over the copied fixtures (in-memory writes)."""
    return PromotionStore(data_dir=data_dir)


@pytest.fixture
def notifier() -> ChangeNotifier:
    """Fresh ChangeNotifier for each test."""
    return ChangeNotifier()


@pytest.fixture
def controller(store: PromotionStore, notifier: ChangeNotifier) -> ActivationController:
    return ActivationController(store, notifier)


# =============================================================================
# Promotion Fixtures
# =============================================================================

@pytest.fixture
def active_promotion_id() -> str:
    """Promotion that is active in the fixtures (Buy 2 Get 1 Free)."""
    return "promo-001"


@pytest.fixture
def weekend_promotion_id() -> str:
    """Inactive promotion in the fixtures (Weekend Buy 2 Get 1)."""
    return "promo-002"
