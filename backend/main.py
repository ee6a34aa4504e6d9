"""
Application factory for FastAPI.

This module provides a factory function for creating FastAPI application instances.
The factory pattern allows for:
- Easy testing with custom settings
- Multiple app instances with different configurations
- Clear separation of app creation from route definitions

Usage:
    from backend.main import create_app
    from backend.settings import Settings

    # Default app (uses get_settings())
    app = create_app()

    # Test app with custom settings
    test_settings = Settings(environment="test", _env_file=None)
    test_app = create_app(settings=test_settings)
"""

import logging
import signal
from typing import Optional

import sentry_sdk
from fastapi import FastAPI

from api.cors import ALLOWED_HEADERS, ALLOWED_METHODS, PreflightCORSMiddleware
from api.errors import register_exception_handlers
from application.models.program import program_json_schema
from backend.observability import configure_observability, shutdown_observability
from backend.settings import Settings, get_settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application Factory
# ---------------------------------------------------------------------------


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure a FastAPI application instance.

    Args:
        settings: Optional Settings instance. If not provided, uses get_settings()
                  which loads from environment variables.

    Returns:
        Configured FastAPI application instance.

    Raises:
        ConfigurationError: the ProgramSpec models no longer derive an object schema.
    """
    if settings is None:
        settings = get_settings()

    configure_observability(settings)

    _init_sentry(settings)

    # Fail at startup, not on the first request
    program_json_schema()
    _check_oracle_configuration(settings)

    app = FastAPI(
        title="Program Builder API",
        description="Schema-guided workout program generation",
        version="1.0.0",
    )

    # Store settings on app state for handler access
    app.state.settings = settings

    _configure_cors(app, settings)
    register_exception_handlers(app)
    _include_routers(app)
    _register_shutdown(app, settings)

    return app


def _init_sentry(settings: Settings) -> None:
    """Initialize Sentry SDK if DSN is configured."""
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            release=settings.render_git_commit,
            traces_sample_rate=0.1,
            profiles_sample_rate=0.1,
        )
        logger.info(
            "Sentry initialized for program-builder-api (release=%s)",
            settings.render_git_commit or "unknown",
        )


def _check_oracle_configuration(settings: Settings) -> None:
    """Log once when the selected provider has no API key. Requests will answer 500."""
    if not settings.oracle_api_key:
        logger.error(
            "%s not set; program generation requests will fail until it is configured",
            settings.oracle_api_key_name,
        )


def _configure_cors(app: FastAPI, settings: Settings) -> None:
    """Configure CORS middleware for the application."""
    app.add_middleware(
        PreflightCORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        expose_headers=["X-Generation-Attempts"],
    )


def _include_routers(app: FastAPI) -> None:
    """Include all API routers in the application."""
    from api.routers import health_router, program_builder_router

    # Health router (no prefix - /health at root)
    app.include_router(health_router)

    # Program builder router (/api/program-builder)
    app.include_router(program_builder_router)


def _register_shutdown(app: FastAPI, settings: Settings) -> None:
    """Register graceful shutdown handler."""

    @app.on_event("shutdown")
    async def shutdown_event():
        shutdown_observability()
        logger.info("program-builder-api shutdown complete")

    # Handle SIGTERM for Render graceful shutdown
    def _handle_sigterm(signum, frame):
        logger.info("Received SIGTERM, initiating graceful shutdown")
        raise SystemExit(0)

    if not settings.is_test:
        signal.signal(signal.SIGTERM, _handle_sigterm)
