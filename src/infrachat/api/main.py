from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from infrachat.api.error_handlers import install_error_handlers
from infrachat.api.middleware.correlation import install_correlation_middleware
from infrachat.api.middleware.session_guard import SessionInFlightMiddleware
from infrachat.api.routes.health import router as health_router
from infrachat.api.routes.provision import router as provision_router
from infrachat.api.routes.resources import router as resources_router
from infrachat.core.config import Settings, get_settings
from infrachat.core.logging import get_logger
from infrachat.observability.prometheus import instrument_app
from infrachat.provisioning.service import ProvisioningService

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    settings.backend.require()
    if app.state.service is None:
        app.state.service = ProvisioningService.from_settings(settings)
    logger.info(
        "API starting up",
        version=settings.app_version,
        environment=settings.environment,
    )
    try:
        yield
    finally:
        await app.state.service.aclose()
        logger.info("API shutting down")


def create_app(
    settings: Settings | None = None,
    service: ProvisioningService | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if settings.api_docs_enabled else None,
        redoc_url="/redoc" if settings.api_docs_enabled else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.service = service

    instrument_app(app)

    origins = [str(o) for o in settings.security.allowed_cors_origins] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["x-correlation-id"],
    )
    app.add_middleware(SessionInFlightMiddleware)

    install_error_handlers(app)
    install_correlation_middleware(app)

    app.include_router(provision_router, prefix="/api", tags=["provision"])
    app.include_router(resources_router, prefix="/api", tags=["resources"])
    app.include_router(health_router, prefix="/api", tags=["health"])
    return app


app = create_app()
