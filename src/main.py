"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from src.api.deps import CART_SESSION_HEADER
from src.api.middleware.error_handler import REQUEST_ID_HEADER, error_handler_middleware
from src.api.middleware.latency_logging import latency_logging_with_stats_middleware
from src.api.middleware.request_size import request_size_limit_middleware
from src.api.routes import (
    addresses,
    cart,
    checkout,
    customers,
    health,
    inventory,
    orders,
    payment_methods,
    payments,
    products,
    webhooks,
)
from src.core.config import get_settings
from src.core.rate_limiter import init_rate_limiter, shutdown_rate_limiter
from src.core.stripe import configure_stripe
from src.services.cart_store import init_cart_store, shutdown_cart_store
from src.services.checkout_reconciler import init_checkout_reconciler, shutdown_checkout_reconciler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.

    Args:
        app: FastAPI application instance.

    Yields:
        None: Control back to the application.
    """
    # Startup
    settings = get_settings()
    logger.info("Starting %s in %s mode", settings.app_name, settings.app_env)

    # Configure Stripe SDK
    configure_stripe()
    logger.info("Stripe SDK configured")

    # Initialize cart store with cleanup task
    await init_cart_store()
    logger.info("Cart store initialized")

    # Initialize checkout rate limiter with cleanup task
    await init_rate_limiter()
    logger.info("Rate limiter initialized")

    # Start reconciliation of abandoned checkouts
    await init_checkout_reconciler()
    logger.info("Checkout reconciler initialized")

    yield
    # Shutdown
    await shutdown_checkout_reconciler()
    logger.info("Checkout reconciler shutdown")
    await shutdown_rate_limiter()
    logger.info("Rate limiter shutdown")
    await shutdown_cart_store()
    logger.info("Cart store shutdown")
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Ashhadu API",
        description="Storefront and back-office backend for Ashhadu Islamic Art",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[CART_SESSION_HEADER, REQUEST_ID_HEADER, "Retry-After"],
    )

    # Add error handler middleware (outermost - catches all errors)
    app.add_middleware(BaseHTTPMiddleware, dispatch=error_handler_middleware)

    # Add latency logging middleware (tracks request timing)
    app.add_middleware(BaseHTTPMiddleware, dispatch=latency_logging_with_stats_middleware)

    # Add request size limit middleware (rejects oversized requests early)
    app.add_middleware(BaseHTTPMiddleware, dispatch=request_size_limit_middleware)

    # Mount health routes at root level (no prefix)
    app.include_router(health.router)

    api_router = APIRouter(prefix="/api")

    # Storefront
    api_router.include_router(products.router)
    api_router.include_router(cart.router)
    api_router.include_router(checkout.router)
    api_router.include_router(orders.router)

    # Customer account
    api_router.include_router(addresses.router)
    api_router.include_router(payment_methods.router)

    # Back-office
    api_router.include_router(customers.router)
    api_router.include_router(inventory.router)

    # Payment providers
    api_router.include_router(payments.stripe_router)
    api_router.include_router(payments.payments_router)
    api_router.include_router(payments.paypal_router)
    api_router.include_router(payments.apple_pay_router)

    # Webhook routes
    api_router.include_router(webhooks.router)

    app.include_router(api_router)

    return app


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
