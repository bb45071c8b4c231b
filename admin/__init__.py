"""
Admin side of the storefront.

Operators manage promotions here; the activation controller is the only
writer of the promotion collection.
"""

from admin.activation import ActivationController

__all__ = [
    "ActivationController",
]
