"""Program builder endpoint.

  POST    /api/program-builder   generate a validated ProgramSpec
  OPTIONS /api/program-builder   CORS pre-flight, 204
  other methods                  405 {"error": "Use POST"}

Errors raised here or below are rendered by api.errors.
"""

import asyncio
import contextlib
import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from api.cors import ALLOWED_METHODS, cors_headers
from api.deps import get_build_program_use_case, get_settings, verify_api_key
from application.errors import InputValidationError
from application.models.program import FieldIssue, validate_request
from application.use_cases.build_program import BuildProgramUseCase
from backend.observability.metrics import ProgramBuilderMetrics
from backend.settings import Settings

router = APIRouter(prefix="/api/program-builder", tags=["program-builder"])
logger = logging.getLogger(__name__)

DISCONNECT_POLL_SECONDS = 0.5


async def _watch_disconnect(request: Request, cancel_event: asyncio.Event) -> None:
    """Set cancel_event once the client goes away."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected, cancelling program generation")
            cancel_event.set()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


@router.options("")
async def preflight(settings: Settings = Depends(get_settings)) -> Response:
    return Response(status_code=204, headers=cors_headers(settings.allowed_origins))


@router.api_route("", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def method_not_allowed(settings: Settings = Depends(get_settings)) -> JSONResponse:
    headers = cors_headers(settings.allowed_origins)
    headers["Allow"] = ", ".join(ALLOWED_METHODS)
    ProgramBuilderMetrics.program_requests_total().add(1, {"status": "405"})
    return JSONResponse(status_code=405, content={"error": "Use POST"}, headers=headers)


@router.post("", dependencies=[Depends(verify_api_key)])
async def build_program(
    request: Request,
    settings: Settings = Depends(get_settings),
    use_case: BuildProgramUseCase = Depends(get_build_program_use_case),
) -> JSONResponse:
    """Validate the request, run the repair loop, return the program.

    The body is read by hand so every contract violation is reported in
    one 400 with field-level details.
    """
    try:
        raw = await request.json()
    except ValueError:
        raise InputValidationError([FieldIssue("", "Request body must be valid JSON", "json_invalid")]) from None

    program_request = validate_request(raw)
    logger.info(
        "Program build requested: days=%d minutes=%d split=%s goal=%s",
        program_request.days_per_week,
        program_request.minutes_per_session,
        program_request.split_preference.value,
        program_request.goal.value,
    )

    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))
    try:
        result = await use_case.execute(program_request, cancel_event=cancel_event)
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher

    ProgramBuilderMetrics.program_requests_total().add(1, {"status": "200"})
    headers = cors_headers(settings.allowed_origins)
    headers["X-Generation-Attempts"] = str(result.attempts)
    return JSONResponse(
        content=result.program.model_dump(mode="json", by_alias=True),
        headers=headers,
    )
