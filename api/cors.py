"""CORS handling for the program builder endpoint.

Browsers call the endpoint cross-origin, so every response (errors included)
carries the CORS headers, and pre-flight answers 204 with an empty body.
"""

from typing import Dict, List

from fastapi.middleware.cors import CORSMiddleware
from starlette.datastructures import Headers
from starlette.responses import Response

ALLOWED_METHODS = ["POST", "OPTIONS"]
ALLOWED_HEADERS = ["Content-Type", "Authorization", "X-API-Key"]


def cors_headers(allowed_origins: List[str]) -> Dict[str, str]:
    """Headers attached to every endpoint response.

    Allow-Origin is only set here for the wildcard; specific origins are
    echoed by the middleware when they match.
    """
    headers = {
        "Access-Control-Allow-Methods": ", ".join(ALLOWED_METHODS),
        "Access-Control-Allow-Headers": ", ".join(ALLOWED_HEADERS),
    }
    if "*" in allowed_origins:
        headers["Access-Control-Allow-Origin"] = "*"
    return headers


class PreflightCORSMiddleware(CORSMiddleware):
    """CORSMiddleware whose successful pre-flight is 204 with no body."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        if response.status_code != 200:
            return response
        headers = {
            key: value
            for key, value in response.headers.items()
            if key.lower() not in ("content-length", "content-type")
        }
        return Response(status_code=204, headers=headers)
