"""
Promotion pricing engine.

Prices a cart under the active "buy 2, get 1 free" promotion: in every group
of three units, the cheapest one is free.

How a cart is priced:
1. Lines are sorted by unit price, most expensive first; each line stands
   for `quantity` consecutive units in that order
2. Every contiguous group of three units pays for its two dearest units; the
   third is free
3. Leftover units (fewer than three, the cheapest ones) are paid in full

Units are never materialized: a line covering unit positions [start, end)
owns the free positions 2, 5, 8, ... in that range, which is
end // 3 - start // 3 of them. Cost is proportional to the number of lines,
not the number of units.

Equal prices keep cart order; Python's sort is stable, so the same cart
always gives away the same units.

The engine is a pure function: no I/O, no shared state, nothing mutated.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError

from shared.errors import PricingValidationError
from shared.models import CartLine, CheckoutSummary, PricingResult, Promotion, PromotionKind

logger = logging.getLogger("pricing_engine")

GROUP_SIZE = 3
ZERO = Decimal("0")


def _validate_lines(cart_lines: Iterable[Union[CartLine, dict[str, Any]]]) -> list[CartLine]:
    """
    Coerce and check cart lines before any arithmetic.

    CartLine already rejects bad values on construction; the explicit checks
    cover lines built with `model_construct` or mutated behind our back.
    """
    lines = []
    for index, line in enumerate(cart_lines):
        if not isinstance(line, CartLine):
            try:
                line = CartLine.model_validate(line)
            except ValidationError as e:
                raise PricingValidationError(f"Invalid cart line {index}: {e}", line_index=index) from e
        if line.quantity < 1:
            raise PricingValidationError(
                f"Cart line {index} ({line.product_id}) has non-positive quantity {line.quantity}",
                line_index=index,
            )
        if line.unit_price < 0 or line.list_price < 0:
            raise PricingValidationError(
                f"Cart line {index} ({line.product_id}) has a negative price",
                line_index=index,
            )
        lines.append(line)
    return lines


def _free_units(lines: list[CartLine]) -> list[tuple[CartLine, int]]:
    """Free unit count for each line, in most-expensive-first order."""
    ordered = sorted(lines, key=lambda line: line.unit_price, reverse=True)
    counts = []
    start = 0
    for line in ordered:
        end = start + line.quantity
        counts.append((line, end // GROUP_SIZE - start // GROUP_SIZE))
        start = end
    return counts


def _items_needed_message(missing: int) -> str:
    noun = "item" if missing == 1 else "items"
    return f"Add {missing} more {noun} to get Buy 2 Get 1 Free"


def _free_items_message(free_items: int) -> str:
    noun = "item" if free_items == 1 else "items"
    return f"Congratulations! You got {free_items} {noun} free"


def _applies(promotion: Optional[Promotion]) -> bool:
    return (
        promotion is not None
        and promotion.is_active
        and promotion.kind == PromotionKind.BUY3_PAY2
    )


def compute_pricing(
    cart_lines: Iterable[Union[CartLine, dict[str, Any]]],
    active_promotion: Optional[Promotion],
) -> PricingResult:
    """
    Price a cart under the active promotion.

    Args:
        cart_lines: Cart snapshot (CartLine instances or equivalent dicts)
        active_promotion: The active promotion, or None. A record with
            is_active=False is treated as None.

    Returns:
        PricingResult with final_total == original_total - savings.

    Raises:
        PricingValidationError: A line has a negative price or non-positive quantity
    """
    lines = _validate_lines(cart_lines)

    total_items = sum(line.quantity for line in lines)
    original_total = sum((line.line_total for line in lines), ZERO)

    if not _applies(active_promotion) or not lines:
        return PricingResult(
            is_active=False,
            total_items=total_items,
            original_total=original_total,
            final_total=original_total,
            savings=ZERO,
            free_items_count=0,
            message=None,
        )

    if total_items < GROUP_SIZE:
        return PricingResult(
            is_active=False,
            total_items=total_items,
            original_total=original_total,
            final_total=original_total,
            savings=ZERO,
            free_items_count=0,
            message=_items_needed_message(GROUP_SIZE - total_items),
        )

    savings = ZERO
    free_items: dict[str, int] = {}
    for line, free in _free_units(lines):
        if free:
            savings += line.unit_price * free
            free_items[line.product_id] = free_items.get(line.product_id, 0) + free

    free_items_count = sum(free_items.values())
    final_total = original_total - savings

    logger.debug(
        f"Priced {total_items} units: {original_total} -> {final_total} "
        f"({free_items_count} free)"
    )

    return PricingResult(
        is_active=True,
        total_items=total_items,
        original_total=original_total,
        final_total=final_total,
        savings=savings,
        free_items_count=free_items_count,
        message=_free_items_message(free_items_count) if free_items_count > 0 else None,
        free_items=free_items,
    )


def summarize_checkout(
    cart_lines: Iterable[Union[CartLine, dict[str, Any]]],
    active_promotion: Optional[Promotion],
) -> CheckoutSummary:
    """
    Everything the checkout page shows: promotion pricing plus sale savings.

    `discount_percent` is the overall saving against list prices, rounded.
    """
    lines = _validate_lines(cart_lines)
    pricing = compute_pricing(lines, active_promotion)

    sale_savings = sum((line.sale_savings for line in lines), ZERO)
    list_total = pricing.original_total + sale_savings
    total_savings = sale_savings + pricing.savings

    discount_percent = 0
    if list_total > 0:
        discount_percent = int((total_savings * 100 / list_total).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    return CheckoutSummary(
        pricing=pricing,
        list_total=list_total,
        sale_savings=sale_savings,
        total_savings=total_savings,
        discount_percent=discount_percent,
    )
