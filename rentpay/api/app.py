"""FastAPI application serving the payment API."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rentpay.api.payment import close_gateway
from rentpay.api.payment import router as payment_router
from rentpay.services.config import get_settings
from rentpay.services.db import dispose_engine, init_models

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables on startup, release pooled resources on shutdown."""
    await init_models()
    logger.info("Payment API started")
    yield
    await close_gateway()
    await dispose_engine()
    logger.info("Payment API stopped")


def create_app() -> FastAPI:
    """Build the FastAPI application from settings."""
    settings = get_settings()
    app = FastAPI(
        title=settings.api_title,
        description="Rent payment lifecycle: obligations, gateway orders, verification",
        version=settings.api_version,
        lifespan=lifespan,
    )

    # The mobile app calls the API directly
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "ok"}

    app.include_router(payment_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
