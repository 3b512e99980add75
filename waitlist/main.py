"""Main FastAPI application for the waitlist service."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from waitlist.config import CORS_ORIGINS
from waitlist.routers import auth, contact, health
from waitlist.routers import waitlist as waitlist_routes
from waitlist.services.registry import ServiceRegistry

logger = logging.getLogger(__name__)


def create_app(
    registry_factory: Callable[[], ServiceRegistry] = ServiceRegistry.from_config,
) -> FastAPI:
    """
    Build the app. The registry is created and started in the lifespan so
    that every store connection has an explicit open/close.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        registry = registry_factory()
        await registry.start()
        app.state.registry = registry
        logger.info("Waitlist service started")
        try:
            yield
        finally:
            await registry.stop()
            logger.info("Waitlist service stopped")

    app = FastAPI(
        title="Waitlist API",
        description="Email OTP verification and referral waitlist",
        version=health.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(waitlist_routes.router)
    app.include_router(auth.router)
    app.include_router(contact.router)
    return app


app = create_app()
