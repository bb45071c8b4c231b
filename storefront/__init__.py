"""
Storefront side of the promotion engine.

- pricing: pure cart pricing under the active promotion
- promotion_client: per-viewer holder of the active promotion
"""

from storefront.pricing import compute_pricing, summarize_checkout
from storefront.promotion_client import ClientState, PromotionClient

__all__ = [
    "compute_pricing",
    "summarize_checkout",
    "ClientState",
    "PromotionClient",
]
