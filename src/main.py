"""FastAPI application entrypoint.

Application startup order:
1. Load and validate settings (invalid configuration aborts startup)
2. Configure structured logging
3. Initialize database engine and session factory
4. Register middleware (CORS, security headers, size limit, request id)
5. Include routers (health, /api/v1)

Shutdown order:
1. Close DB connection pool
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.router import api_v1_router
from src.config import Settings, get_settings
from src.core.security import RequestSizeLimitMiddleware, SecurityHeadersMiddleware
from src.database import close_db, init_db
from src.infra.health import HealthCheckRouter
from src.telemetry.logging import RequestIdMiddleware, configure_logging

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings

    # Configure structured logging first (before any log calls)
    configure_logging(json_logs=settings.is_prod, log_level=settings.log_level_value)

    log.info(
        "app.starting",
        environment=settings.node_env,
        port=settings.port,
        solana_network=settings.solana_network,
        db_url=settings.database_url.split("@")[-1],
    )

    init_db(settings)

    log.info("app.ready")
    yield

    await close_db()
    log.info("app.shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory."""
    settings = settings or get_settings()

    app = FastAPI(
        title="DPDP Data Rights Service",
        description=(
            "Data subject rights under India's DPDP Act 2023: access, erasure, "
            "correction, portability and grievance redressal."
        ),
        version="1.0.0",
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
        openapi_url="/openapi.json" if settings.is_dev else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    # Routes resolve Depends(get_settings) to the settings this app was built with
    app.dependency_overrides[get_settings] = lambda: settings

    # ------------------------------------------------------------------ #
    # Middleware (added in reverse order - last added = first executed)
    # ------------------------------------------------------------------ #

    allow_any_origin = "*" in settings.cors_origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin,
        allow_credentials=not allow_any_origin,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )
    app.add_middleware(SecurityHeadersMiddleware, is_production=settings.is_prod)
    app.add_middleware(RequestSizeLimitMiddleware)
    # Outermost: every log line below carries the request id
    app.add_middleware(RequestIdMiddleware)

    # ------------------------------------------------------------------ #
    # Routers
    # ------------------------------------------------------------------ #
    app.include_router(HealthCheckRouter(settings))
    app.include_router(api_v1_router)

    # ------------------------------------------------------------------ #
    # Global exception handlers
    # ------------------------------------------------------------------ #

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error(
            "app.unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


def run() -> None:
    """Console entrypoint: serve the app with uvicorn on PORT."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "src.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    run()
