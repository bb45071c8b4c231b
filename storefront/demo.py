"""
Demonstration of the promotion flow end to end.

An operator switches promotions from the admin side while a storefront viewer
keeps pricing the same cart. Run it to watch the change signal travel from
the activation controller to the viewer's client.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from admin.activation import ActivationController
from realtime.change_notifier import ChangeNotifier
from shared.config import Settings, configure_logging
from shared.models import CartLine, PricingResult
from shared.promotion_store import PromotionStore
from storefront.promotion_client import PromotionClient

logger = logging.getLogger("demo")


DEMO_CART = [
    CartLine.from_product("prod-hoodie", price=Decimal("600"), sale_price=Decimal("450"), quantity=1),
    CartLine.from_product("prod-tshirt", price=Decimal("250"), quantity=2),
    CartLine.from_product("prod-cap", price=Decimal("150"), sale_price=Decimal("120"), quantity=1),
]


def _print_result(label: str, result: PricingResult) -> None:
    print(f"\n{label}")
    print(f"  Items:          {result.total_items}")
    print(f"  Original total: {result.original_total} LE")
    print(f"  Final total:    {result.final_total} LE")
    if result.is_active:
        print(f"  Savings:        {result.savings} LE ({result.free_items_count} free)")
    if result.message:
        print(f"  Message:        {result.message}")


async def run_activation_demo(settings: Optional[Settings] = None) -> list[PricingResult]:
    """
    Demonstrate activation propagating to a viewer.

    This shows:
    1. A viewer's client resolves the active promotion and prices the cart
    2. The operator deactivates everything; the viewer reprices at full price
    3. The operator activates another promotion; the viewer gets the discount back
    """
    settings = settings or Settings.from_env()

    print("\n" + "=" * 70)
    print("DEMO: Promotion activation reaches the storefront")
    print("=" * 70 + "\n")

    store = PromotionStore(data_dir=settings.data_dir)
    notifier = ChangeNotifier()
    controller = ActivationController(store, notifier)

    results = []
    async with PromotionClient(store, notifier, fetch_timeout=settings.fetch_timeout) as client:
        result = client.price(DEMO_CART)
        _print_result("Cart with the fixture's active promotion:", result)
        results.append(result)

        print("\n" + "-" * 70)
        print("ACTION: Operator turns every promotion off")
        print("-" * 70)
        controller.deactivate_all()
        await client.wait_until_resolved()
        result = client.price(DEMO_CART)
        _print_result("Cart after deactivation:", result)
        results.append(result)

        print("\n" + "-" * 70)
        print("ACTION: Operator activates promo-002")
        print("-" * 70)
        controller.set_active("promo-002")
        await client.wait_until_resolved()
        result = client.price(DEMO_CART)
        _print_result("Cart after activating promo-002:", result)
        results.append(result)

    print("\nPromotions now:")
    for promotion in store.list_all():
        marker = "ACTIVE" if promotion.is_active else "off"
        print(f"  {promotion.id:<10} {marker:<6} {promotion.name}")

    return results


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings)
    asyncio.run(run_activation_demo(settings))


if __name__ == "__main__":
    main()
