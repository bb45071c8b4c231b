"""
Tests for the command-line interface.

Commands run against a private copy of the fixtures selected through
STOREFRONT_DATA_DIR.
"""

import json
from pathlib import Path

import pytest

from cli import main
from shared.promotion_store import PromotionStore


@pytest.fixture(autouse=True)
def fixture_env(data_dir: Path, monkeypatch):
    monkeypatch.setenv("STOREFRONT_DATA_DIR", str(data_dir))
    monkeypatch.delenv("STOREFRONT_LOG_LEVEL", raising=False)


@pytest.fixture
def cart_file(tmp_path: Path) -> Path:
    path = tmp_path / "cart.json"
    path.write_text(json.dumps([
        {"product_id": "a", "unit_price": "100", "list_price": "100", "quantity": 1},
        {"product_id": "b", "unit_price": "200", "list_price": "200", "quantity": 1},
        {"product_id": "c", "unit_price": "300", "list_price": "300", "quantity": 1},
    ]))
    return path


class TestPromotionsCommand:
    """Tests for `promotions`."""

    def test_list(self, capsys):
        assert main(["promotions", "list"]) == 0

        out = capsys.readouterr().out
        assert "promo-001" in out
        assert "ACTIVE" in out

    def test_activate_writes_through(self, data_dir, weekend_promotion_id):
        assert main(["promotions", "activate", weekend_promotion_id]) == 0

        assert PromotionStore(data_dir=data_dir).fetch_active().id == weekend_promotion_id

    def test_deactivate_all_writes_through(self, data_dir):
        assert main(["promotions", "deactivate-all"]) == 0

        assert PromotionStore(data_dir=data_dir).fetch_active() is None

    def test_activate_unknown(self, capsys):
        assert main(["promotions", "activate", "nonexistent-id"]) == 1

        assert "not found" in capsys.readouterr().err.lower()

    def test_activate_requires_id(self):
        with pytest.raises(SystemExit):
            main(["promotions", "activate"])


class TestPriceCommand:
    """Tests for `price`."""

    def test_price(self, cart_file, capsys):
        assert main(["price", str(cart_file)]) == 0

        result = json.loads(capsys.readouterr().out)
        assert result["is_active"] is True
        assert result["free_items_count"] == 1

    def test_checkout(self, cart_file, capsys):
        assert main(["price", str(cart_file), "--checkout"]) == 0

        result = json.loads(capsys.readouterr().out)
        assert result["discount_percent"] == 17

    def test_missing_cart_file(self, tmp_path):
        assert main(["price", str(tmp_path / "missing.json")]) == 1

    def test_invalid_cart(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps([{"product_id": "a", "unit_price": "1", "list_price": "1", "quantity": 0}]))

        assert main(["price", str(path)]) == 1


class TestDemoCommand:
    def test_demo_runs(self, data_dir, capsys):
        assert main(["demo"]) == 0

        assert "DEMO" in capsys.readouterr().out
        # The demo switches promotions in memory only
        assert PromotionStore(data_dir=data_dir).fetch_active().id == "promo-001"
