# tablebook/main.py
"""
Tablebook API application.

Run with ``uvicorn tablebook.main:app``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from . import __version__
from .core.config import settings
from .errors import register_error_handlers
from .init_db import init_db
from .routes.v1 import (
    access_codes as access_codes_v1,
    availability as availability_v1,
    bookings as bookings_v1,
    health as health_v1,
    notifications as notifications_v1,
    payments as payments_v1,
    prometheus as prometheus_v1,
    redemptions as redemptions_v1,
    top_ups as top_ups_v1,
)

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info("Tablebook API starting up (environment=%s)", settings.environment)
    init_db()
    if not settings.payment_webhook_secret.get_secret_value():
        logger.warning("Payment webhook secret is not set; payment notifications will be refused")
    if not settings.door_api_key.get_secret_value():
        logger.warning("Door API key is not set; redemptions will be refused")
    yield
    logger.info("Tablebook API shutting down")


app = FastAPI(
    title="Tablebook API",
    description="Reservation scheduling and settlement for a small shared venue",
    version=__version__,
    lifespan=app_lifespan,
)
register_error_handlers(app)

api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(availability_v1.router, prefix="/availability")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(top_ups_v1.router, prefix="/top-ups")
api_v1.include_router(payments_v1.router, prefix="/payments")
api_v1.include_router(access_codes_v1.router, prefix="/access-codes")
api_v1.include_router(redemptions_v1.router, prefix="/redemptions")
api_v1.include_router(notifications_v1.router, prefix="/notifications")

app.include_router(api_v1)
app.include_router(health_v1.router)
app.include_router(prometheus_v1.router)
