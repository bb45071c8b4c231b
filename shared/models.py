"""
Domain models for the storefront promotion engine.

These models describe the promotion records the admin panel manages, the cart
snapshot the storefront prices, and the pricing results the cart, checkout and
banner render.

Design decisions:
- Using Pydantic for validation and serialization
- Money is Decimal so `final_total == original_total - savings` holds exactly
- CartLine is frozen: it is a snapshot owned by the shopping session
- Only one promotion kind exists; the enum leaves room for more
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


# =============================================================================
# Enums
# =============================================================================

class PromotionKind(str, Enum):
    """
    Supported promotion rules.

    The stored value matches what the hosted backend keeps in the
    `promotions.type` column.
    """
    BUY3_PAY2 = "buy_2_get_1"     # Every 3 units, the cheapest one is free


# =============================================================================
# Promotions
# =============================================================================

class Promotion(BaseModel):
    """
    A promotion record as persisted by the store.

    At most one record in the whole store has `is_active=True` at any
    observable instant.
    """
    id: str = Field(..., description="Unique promotion identifier")
    name: str = Field(..., description="Display name shown in the admin panel")
    kind: PromotionKind = Field(
        default=PromotionKind.BUY3_PAY2,
        description="Which pricing rule this promotion applies"
    )
    is_active: bool = Field(default=False, description="Whether shoppers get this promotion")
    updated_at: Optional[datetime] = Field(default=None)
    description: Optional[str] = Field(default=None)

    model_config = ConfigDict(use_enum_values=True)


# =============================================================================
# Cart
# =============================================================================

class CartLine(BaseModel):
    """
    One line of a shopping cart, as supplied by the cart view model.

    `unit_price` is what the shopper is charged per unit before the promotion
    (the sale price when the product has one), `list_price` the catalog price.
    """
    product_id: str = Field(..., description="Reference to product")
    unit_price: Decimal = Field(..., ge=0, description="Effective price per unit")
    list_price: Decimal = Field(..., ge=0, description="Catalog price per unit")
    quantity: int = Field(..., ge=1, description="Units of this product in cart")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_product(
        cls,
        product_id: str,
        price: Decimal,
        quantity: int,
        sale_price: Optional[Decimal] = None,
    ) -> "CartLine":
        """
        Build a line from catalog fields.

        A missing or zero sale price means the product is not on sale.
        """
        unit_price = sale_price if sale_price else price
        return cls(
            product_id=product_id,
            unit_price=unit_price,
            list_price=price,
            quantity=quantity,
        )

    @property
    def line_total(self) -> Decimal:
        """Effective price times quantity."""
        return self.unit_price * self.quantity

    @property
    def sale_savings(self) -> Decimal:
        """How much the sale price saves on this line (never negative)."""
        return max(self.list_price - self.unit_price, Decimal("0")) * self.quantity


# =============================================================================
# Pricing results
# =============================================================================

class PricingResult(BaseModel):
    """
    Outcome of pricing a cart under the active promotion.

    Derived value: recomputed on every cart change, never stored.
    """
    is_active: bool = Field(..., description="Whether the promotion discounted this cart")
    total_items: int = Field(..., ge=0)
    original_total: Decimal = Field(..., ge=0)
    final_total: Decimal = Field(..., ge=0)
    savings: Decimal = Field(..., ge=0)
    free_items_count: int = Field(..., ge=0)
    message: Optional[str] = Field(
        default=None,
        description="Shopper-facing hint (items still needed, or items won)"
    )
    free_items: dict[str, int] = Field(
        default_factory=dict,
        description="Free unit count per product id, most expensive product first"
    )

    model_config = ConfigDict(frozen=True)


class CheckoutSummary(BaseModel):
    """
    Everything the checkout page shows about what the shopper saves.

    Sale savings come from sale prices below list price; promotion savings
    come from the pricing result.
    """
    pricing: PricingResult
    list_total: Decimal = Field(..., ge=0, description="Cart total at list prices")
    sale_savings: Decimal = Field(..., ge=0)
    total_savings: Decimal = Field(..., ge=0)
    discount_percent: int = Field(..., ge=0, le=100)

    model_config = ConfigDict(frozen=True)
