# backend/app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.constants import ALLOWED_ORIGINS, API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .errors import register_error_handlers
from .init_db import init_db
from .middleware.prometheus_middleware import PrometheusMiddleware
from .routes import health, payments, prometheus, sessions, subscriptions

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def _validate_startup_config() -> None:
    if settings.payments_fake and settings.is_production:
        raise RuntimeError("payments_fake cannot be enabled in production")
    secret = settings.secret_key.get_secret_value()
    if settings.is_production and secret == "change-me-in-production":
        raise RuntimeError("secret_key must be configured in production")
    if not settings.stripe_secret_key.get_secret_value() and not settings.payments_fake:
        logger.warning("Stripe is not configured; Stripe payments are disabled")
    if not settings.liqpay_public_key and not settings.payments_fake:
        logger.warning("LiqPay is not configured; LiqPay payments and subscriptions are disabled")


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    _validate_startup_config()
    init_db()
    logger.info(f"Client assignment policy: {settings.client_assignment_policy}")
    yield
    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

# Register unified error envelope handlers
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)
app.add_middleware(PrometheusMiddleware)

app.include_router(sessions.router, prefix="/sessions")
app.include_router(payments.router, prefix="/payments")
app.include_router(subscriptions.router, prefix="/subscriptions")
app.include_router(health.router)
app.include_router(prometheus.router)


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint - API information."""
    return {"message": f"Welcome to the {BRAND_NAME} API", "version": API_VERSION, "docs": "/docs"}


fastapi_app = app

__all__ = ["app", "fastapi_app"]
