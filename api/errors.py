"""Map ProgramBuilderError subclasses (and anything unexpected) to JSON responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.cors import cors_headers
from application.errors import ProgramBuilderError
from backend.observability.metrics import ProgramBuilderMetrics

logger = logging.getLogger(__name__)


def _headers_for(request: Request) -> dict:
    settings = getattr(request.app.state, "settings", None)
    origins = settings.allowed_origins if settings is not None else ["*"]
    return cors_headers(origins)


async def program_builder_error_handler(request: Request, exc: ProgramBuilderError) -> JSONResponse:
    ProgramBuilderMetrics.program_requests_total().add(1, {"status": str(exc.status_code)})
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_payload(),
        headers=_headers_for(request),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    ProgramBuilderMetrics.program_requests_total().add(1, {"status": "500"})
    return JSONResponse(
        status_code=500,
        content={"error": "Server error", "message": str(exc) or type(exc).__name__},
        headers=_headers_for(request),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers on an application instance."""
    app.add_exception_handler(ProgramBuilderError, program_builder_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
