"""
Exceptions raised by the promotion pricing components.

Every error the storefront or admin side can surface derives from
PromotionError so entry points (API, CLI) can map them in one place.
"""

from typing import Optional


class PromotionError(Exception):
    """Base class for all promotion-related errors."""


class PricingValidationError(PromotionError, ValueError):
    """A cart line is malformed (negative price, non-positive quantity, bad shape)."""

    def __init__(self, message: str, line_index: Optional[int] = None):
        super().__init__(message)
        self.line_index = line_index


class PromotionNotFoundError(PromotionError, KeyError):
    """No promotion exists with the requested id."""

    def __init__(self, promotion_id: str):
        super().__init__(promotion_id)
        self.promotion_id = promotion_id

    def __str__(self) -> str:
        return f"Promotion not found: {self.promotion_id}"


class StoreError(PromotionError):
    """The promotion store could not complete a read or write."""


class StoreUnavailableError(StoreError):
    """The backing data could not be read."""


class ConcurrentModificationError(StoreError):
    """The store changed since the caller last read it."""

    def __init__(self, expected_version: int, actual_version: int):
        super().__init__(
            f"Promotions changed concurrently: expected version {expected_version}, "
            f"store is at {actual_version}"
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class ActivationError(PromotionError):
    """
    An operator's activation request failed.

    The underlying store error is kept on `cause` (and chained via `from`).
    """

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause
