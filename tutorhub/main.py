# tutorhub/main.py
from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from .core.config import settings
from .errors import register_error_handlers
from .routes.v1 import (
    admin_settings as admin_settings_v1,
    booking_modifications as booking_modifications_v1,
    bookings as bookings_v1,
    payouts as payouts_v1,
    prometheus as prometheus_v1,
    teachers as teachers_v1,
    wallets as wallets_v1,
    webhooks as webhooks_v1,
)
from .schemas.base_responses import HealthCheckResponse

API_VERSION = "0.1.0"

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"{settings.app_name} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    if not settings.redis_url:
        logger.warning("REDIS_URL is not set; booking slot locks are disabled")
    yield
    logger.info(f"{settings.app_name} API shutting down...")


app = FastAPI(
    title=f"{settings.app_name} API",
    description="Wallet ledger, payouts and booking lifecycle",
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

# Register unified error envelope handlers
register_error_handlers(app)

# V1 routers - prefixes added here, not in the route modules
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(wallets_v1.router, prefix="/wallets")
api_v1.include_router(payouts_v1.router, prefix="/payouts")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
api_v1.include_router(teachers_v1.router, prefix="/teachers")
api_v1.include_router(booking_modifications_v1.router, prefix="/booking-modifications")
api_v1.include_router(webhooks_v1.router, prefix="/webhooks")
api_v1.include_router(admin_settings_v1.router, prefix="/admin/settings")
app.include_router(api_v1)

# Infrastructure paths stay outside the versioned API
app.include_router(prometheus_v1.router, prefix="/metrics")


@app.get("/health", response_model=HealthCheckResponse, include_in_schema=False)
def health_check() -> HealthCheckResponse:
    return HealthCheckResponse(status="healthy", service=settings.app_name, version=API_VERSION)
