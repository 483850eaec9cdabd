# backend/sati/main.py
"""
ASGI application for the SATI Centro de Consulta backend.

Run with: uvicorn sati.main:app
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Response

from . import __version__
from .core.config import is_running_tests, settings
from .core.constants import BRAND_NAME
from .database import get_db_session, init_db
from .errors import register_error_handlers
from .middleware.prometheus_middleware import METRICS_PATH, PrometheusMiddleware
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes import (
    account,
    auth,
    bookings,
    config,
    health,
    logs,
    payments,
    rooms,
    subscription,
)
from .services.config_service import ConfigService

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")

    init_db()
    with get_db_session() as db:
        ConfigService(db).ensure_defaults()

    if not settings.stripe_configured:
        logger.warning("Stripe secret key not set; card payments are disabled")

    yield

    logger.info(f"{BRAND_NAME} API shutting down...")


app = FastAPI(
    title=f"{BRAND_NAME} API",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
)

register_error_handlers(app)
app.add_middleware(PrometheusMiddleware)

api = APIRouter(prefix="/api")
api.include_router(bookings.router, prefix="/bookings")
api.include_router(payments.router, prefix="/payments")
api.include_router(account.router, prefix="/account")
api.include_router(subscription.router, prefix="/subscription")
api.include_router(config.router, prefix="/config")
api.include_router(rooms.router, prefix="/rooms")
api.include_router(auth.router, prefix="/auth")
api.include_router(logs.router, prefix="/logs")
api.include_router(health.router)
app.include_router(api)


@app.get(METRICS_PATH, include_in_schema=False)
def metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
