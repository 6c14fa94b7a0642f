"""FastAPI application configuration (Paywall API)."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CollectorRegistry, make_asgi_app, multiprocess
from redis.exceptions import RedisError

from ...application.paywall.dtos import ErrorResponseDTO
from ...domain.errors import PaywallError
from ...envs.paywall_env import get_settings
from ...infrastructure.storage import KeyValueStore
from ...middleware.access_gate import AccessTokenMiddleware
from .dependencies import (
    build_payment_record_repository,
    close_shared_resources,
    get_key_value_store,
)
from .routers import paywall, protected

logger = logging.getLogger(__name__)

settings = get_settings()


def _error_response(status_code: int, error: str, message: str) -> JSONResponse:
    body = ErrorResponseDTO(
        error=error, message=message, timestamp=datetime.now(timezone.utc)
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def _metrics_app():
    """Expose metrics, aggregating across workers when multiprocess mode is on."""
    if os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        return make_asgi_app(registry=registry)
    return make_asgi_app()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    try:
        await build_payment_record_repository(settings).register_scripts()
    except RedisError as e:
        # Scripts are registered again on first use
        logger.warning("Could not preload payment record scripts: %s", e)
    yield
    await close_shared_resources(settings)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=settings.description or f"{settings.title} paywall API",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        AccessTokenMiddleware,
        protected_path=settings.protected_path,
        repository_factory=lambda: build_payment_record_repository(settings),
        enable_logging=settings.enable_logging,
    )
    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PaywallError)
    async def paywall_error_handler(request: Request, exc: PaywallError) -> JSONResponse:
        return _error_response(exc.status_code, exc.error, exc.message)

    @app.exception_handler(RedisError)
    async def store_error_handler(request: Request, exc: RedisError) -> JSONResponse:
        logger.error("Payment record store error on %s: %s", request.url.path, exc)
        return _error_response(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "ServiceUnavailable",
            "Payment record store unavailable",
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "InternalServerError",
            "An unexpected error occurred",
        )

    # Include routers
    app.include_router(paywall.router, prefix=settings.base_path)
    app.include_router(protected.router, prefix=settings.protected_path)

    app.mount("/metrics", _metrics_app())

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": f"Welcome to {settings.app_name} Paywall API",
            "version": settings.app_version,
            "docs": "/docs",
            "paywall": settings.base_path,
        }

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {
            "status": "healthy",
            "service": f"{settings.app_name} Paywall",
            "version": settings.app_version,
        }

    @app.get("/ready")
    async def readiness_check(store: KeyValueStore = Depends(get_key_value_store)):
        """Readiness probe: the payment record store must answer."""
        if not await store.ping():
            return _error_response(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "ServiceUnavailable",
                "Payment record store unavailable",
            )
        return {"status": "ready"}

    return app


app = create_app()
