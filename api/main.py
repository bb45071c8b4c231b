"""
FastAPI application for the storefront promotion service.

This application provides:
1. Admin endpoints to list and switch promotions (/promotions/...)
2. Storefront endpoints to price a cart and build the checkout summary
3. A cheap "is there a promotion?" check for the home-page banner

Run with:
    uv run uvicorn api.main:app --reload

Then visit http://localhost:8000/docs for interactive API documentation.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from admin.activation import ActivationController
from realtime.change_notifier import ChangeNotifier
from shared.config import Settings, configure_logging
from shared.errors import (
    ActivationError,
    ConcurrentModificationError,
    PromotionNotFoundError,
    StoreError,
)
from shared.models import CartLine, CheckoutSummary, PricingResult, Promotion
from shared.promotion_store import PromotionStore
from storefront.pricing import compute_pricing, summarize_checkout

logger = logging.getLogger("storefront_api")


# Request/response models
class CartRequest(BaseModel):
    """Cart snapshot sent by the cart or checkout page."""
    lines: list[CartLine] = Field(default_factory=list)


class PromotionListing(BaseModel):
    """Admin listing; `version` can be echoed back as expected_version."""
    version: int
    promotions: list[Promotion]


class ActivePromotionCheck(BaseModel):
    has_active_promotion: bool


# Dependencies
def get_store(request: Request) -> PromotionStore:
    return request.app.state.store


def get_controller(request: Request) -> ActivationController:
    return request.app.state.controller


def _fetch_active_fail_open(store: PromotionStore) -> Optional[Promotion]:
    """Promotion lookup for pricing; a store failure means no promotion."""
    try:
        return store.fetch_active()
    except StoreError as e:
        logger.warning(f"Active promotion lookup failed: {e}; pricing without promotion")
        return None


def _activation_http_error(e: ActivationError) -> HTTPException:
    if isinstance(e.cause, ConcurrentModificationError):
        return HTTPException(status_code=409, detail=str(e.cause))
    return HTTPException(status_code=503, detail=str(e))


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[PromotionStore] = None,
    notifier: Optional[ChangeNotifier] = None,
) -> FastAPI:
    """
    Build the application with explicitly owned collaborators.

    Tests pass their own store and notifier; `uvicorn api.main:app` uses the
    environment-configured defaults.
    """
    settings = settings or Settings.from_env()
    store = store or PromotionStore(data_dir=settings.data_dir, persist=settings.persist)
    notifier = notifier or ChangeNotifier()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application startup and shutdown."""
        logger.info(f"Starting storefront promotion API (data: {store.data_dir})")
        yield
        notifier.clear_subscribers()
        logger.info("Shutting down")

    app = FastAPI(
        title="Storefront Promotion Service",
        description="""
        Promotion pricing for the storefront and promotion switching for the admin panel.

        ## Endpoints

        - `/promotions/*` - Admin listing and activation
        - `/pricing` - Price a cart under the active promotion
        - `/checkout/summary` - Totals and savings for the checkout page
        """,
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.notifier = notifier
    app.state.controller = ActivationController(store, notifier)

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/health", tags=["Health"])
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "storefront-promotions"}

    # =========================================================================
    # Admin: promotions
    # =========================================================================

    @app.get("/promotions", response_model=PromotionListing, tags=["Promotions"])
    def list_promotions(store: PromotionStore = Depends(get_store)):
        """List every promotion, ordered by id."""
        try:
            return PromotionListing(version=store.version, promotions=store.list_all())
        except StoreError as e:
            raise HTTPException(status_code=503, detail=str(e))

    @app.get("/promotions/active", response_model=Optional[Promotion], tags=["Promotions"])
    def get_active_promotion(store: PromotionStore = Depends(get_store)):
        """The active promotion, or null."""
        return _fetch_active_fail_open(store)

    @app.get("/promotions/active/exists", response_model=ActivePromotionCheck, tags=["Promotions"])
    def has_active_promotion(store: PromotionStore = Depends(get_store)):
        """Cheap check used by the home-page banner."""
        try:
            return ActivePromotionCheck(has_active_promotion=store.has_active())
        except StoreError as e:
            logger.warning(f"Active promotion check failed: {e}")
            return ActivePromotionCheck(has_active_promotion=False)

    @app.put("/promotions/{promotion_id}", response_model=Promotion, tags=["Promotions"])
    def save_promotion(
        promotion_id: str,
        promotion: Promotion,
        expected_version: Optional[int] = None,
        controller: ActivationController = Depends(get_controller),
    ):
        """Create or edit a promotion record."""
        if promotion.id != promotion_id:
            raise HTTPException(
                status_code=400,
                detail=f"Body id {promotion.id} does not match path id {promotion_id}",
            )
        try:
            return controller.save(promotion, expected_version=expected_version)
        except ActivationError as e:
            raise _activation_http_error(e)

    @app.post("/promotions/deactivate-all", tags=["Promotions"])
    def deactivate_all(
        expected_version: Optional[int] = None,
        controller: ActivationController = Depends(get_controller),
    ):
        """Turn every promotion off."""
        try:
            controller.deactivate_all(expected_version=expected_version)
        except ActivationError as e:
            raise _activation_http_error(e)
        return {"status": "ok", "active_promotion": None}

    @app.post("/promotions/{promotion_id}/activate", response_model=Promotion, tags=["Promotions"])
    def activate_promotion(
        promotion_id: str,
        expected_version: Optional[int] = None,
        controller: ActivationController = Depends(get_controller),
    ):
        """Make this the only active promotion."""
        try:
            return controller.set_active(promotion_id, expected_version=expected_version)
        except PromotionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ActivationError as e:
            raise _activation_http_error(e)

    @app.post("/promotions/{promotion_id}/deactivate", response_model=Promotion, tags=["Promotions"])
    def deactivate_promotion(
        promotion_id: str,
        expected_version: Optional[int] = None,
        controller: ActivationController = Depends(get_controller),
    ):
        """Turn this promotion off."""
        try:
            return controller.deactivate(promotion_id, expected_version=expected_version)
        except PromotionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ActivationError as e:
            raise _activation_http_error(e)

    @app.post("/promotions/{promotion_id}/toggle", response_model=Promotion, tags=["Promotions"])
    def toggle_promotion(
        promotion_id: str,
        expected_version: Optional[int] = None,
        controller: ActivationController = Depends(get_controller),
    ):
        """Flip this promotion on or off, as the admin panel button does."""
        try:
            return controller.toggle(promotion_id, expected_version=expected_version)
        except PromotionNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ActivationError as e:
            raise _activation_http_error(e)

    # =========================================================================
    # Storefront: pricing
    # =========================================================================

    @app.post("/pricing", response_model=PricingResult, tags=["Pricing"])
    def price_cart(cart: CartRequest, store: PromotionStore = Depends(get_store)):
        """Price a cart under the active promotion."""
        return compute_pricing(cart.lines, _fetch_active_fail_open(store))

    @app.post("/checkout/summary", response_model=CheckoutSummary, tags=["Pricing"])
    def checkout_summary(cart: CartRequest, store: PromotionStore = Depends(get_store)):
        """Totals and savings shown on the checkout page."""
        return summarize_checkout(cart.lines, _fetch_active_fail_open(store))


# Configure logging and build the default application
_settings = Settings.from_env()
configure_logging(_settings)
app = create_app(_settings)
