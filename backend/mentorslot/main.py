# backend/mentorslot/main.py
"""
FastAPI application for the session reservation engine.

Run with:
    uvicorn mentorslot.main:app --app-dir backend
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.constants import BRAND_NAME
from .core.exceptions import DomainException
from .database import init_db
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import availability as availability_v1
from .routes.v1 import bookings as bookings_v1
from .routes.v1 import slots as slots_v1

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Domain errors raised outside a route's own try/except (e.g. in dependencies)."""
    http_exc = exc.to_http_exception()
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


def create_app(init_schema: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if init_schema:
            init_db()
        logger.info(
            f"{BRAND_NAME} API starting (environment={settings.environment}, "
            f"payment_window={settings.payment_window_seconds}s)"
        )
        yield
        logger.info(f"{BRAND_NAME} API shutting down")

    application = FastAPI(
        title=f"{BRAND_NAME} API",
        description="Mentor session slot reservation and payment-timeout engine",
        version="1.0.0",
        lifespan=lifespan,
    )
    application.add_exception_handler(DomainException, domain_exception_handler)

    application.include_router(slots_v1.router, prefix="/api/v1/slots")
    application.include_router(bookings_v1.router, prefix="/api/v1/bookings")
    application.include_router(availability_v1.router, prefix="/api/v1/availability")

    @application.get("/health", tags=["health"])
    def health() -> dict:
        return {"status": "healthy", "service": BRAND_NAME, "environment": settings.environment}

    @application.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(
            content=prometheus_metrics.get_metrics(),
            media_type=prometheus_metrics.get_content_type(),
        )

    return application


app = create_app()
