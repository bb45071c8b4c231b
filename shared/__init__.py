"""
Shared infrastructure for the storefront and the admin panel.

This package contains code used by both sides:
- Domain models (Promotion, CartLine, PricingResult)
- Promotion store (JSON-backed, single source of truth for the active promotion)
- Errors and configuration
"""

from shared.models import (
    Promotion,
    PromotionKind,
    CartLine,
    PricingResult,
    CheckoutSummary,
)
from shared.promotion_store import PromotionStore
from shared.config import Settings

__all__ = [
    "Promotion",
    "PromotionKind",
    "CartLine",
    "PricingResult",
    "CheckoutSummary",
    "PromotionStore",
    "Settings",
]
