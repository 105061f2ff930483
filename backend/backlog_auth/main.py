"""Backlog Auth Backend - FastAPI Application Factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from backlog_auth.api import admin_router, auth_router, health_router
from backlog_auth.api.errors import register_exception_handlers
from backlog_auth.core import engine, settings, setup_logging
from backlog_auth.core.logging import get_logger
from backlog_auth.middleware import LoginRateLimiter, SecurityHeadersMiddleware

# Import all models to ensure they're registered with Base for Alembic
from backlog_auth.models import TokenBlacklist, User  # noqa: F401
from backlog_auth.services.audit import SecurityEvent, Severity, get_audit_logger
from backlog_auth.services.maintenance import SessionMaintenanceService

logger = get_logger("main")


def _log_startup_security() -> None:
    """Report configuration warnings and record the startup audit event."""
    for warning in settings.check_security_configuration():
        logger.warning(f"Security configuration: {warning}")

    get_audit_logger().log_event(
        SecurityEvent.SYSTEM_STARTUP,
        Severity.LOW,
        "Security configuration validated",
        {
            "jwt_secret_length": len(settings.jwt_secret_key),
            "session_secret_length": len(settings.session_secret_key),
            "google_oauth_enabled": settings.google_oauth_enabled,
            "revocation_fail_open": settings.revocation_fail_open,
            "lockout_fail_open": settings.lockout_fail_open,
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.environment})")
    _log_startup_security()

    maintenance = SessionMaintenanceService(rate_limiter=app.state.login_rate_limiter)
    await maintenance.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    await maintenance.stop()
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Authentication and session service for the Game Backlog Tracker",
        version=settings.app_version,
        lifespan=lifespan,
        # API docs only when debugging; they expose every route and schema
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    app.state.login_rate_limiter = LoginRateLimiter(settings.login_rate_limit_per_minute)

    register_exception_handlers(app)

    # Security headers middleware
    app.add_middleware(SecurityHeadersMiddleware)

    # Browser session: OAuth state and the session identity fallback
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.session_secret_key,
        session_cookie=settings.session_cookie_name,
        max_age=24 * 60 * 60,
        same_site="strict" if settings.is_production else "lax",
        https_only=settings.is_production,
    )

    # CORS middleware - MUST be outermost (added last in Starlette LIFO order)
    # so that CORS headers are present on ALL responses, including 401s.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            "X-Request-ID",
        ],
    )

    # Prometheus metrics (before routers so /metrics endpoint is registered first)
    if settings.enable_metrics:
        from prometheus_fastapi_instrumentator import Instrumentator

        Instrumentator(
            excluded_handlers=["/health", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    # Include routers
    app.include_router(health_router)  # Health at root level
    app.include_router(auth_router)  # /auth
    app.include_router(admin_router)  # /admin

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
        }

    return app


# Application instance
app = create_app()
