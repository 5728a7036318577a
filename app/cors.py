"""
Cross-origin headers for the /api resources.

Two policies, chosen by CORS_ALLOW_ORIGINS:
- "*": any origin, Access-Control-Allow-Origin: *
- allow-list: the request Origin is echoed only when listed, with
  Vary: Origin; unlisted or missing origins get no CORS headers.
"""

from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

ALLOW_METHODS = "GET,POST,OPTIONS"
ALLOW_HEADERS = "Content-Type"


def cors_headers(origin: Optional[str], allowed_origins: list[str]) -> dict[str, str]:
    """
    Build the CORS headers for a response.

    Args:
        origin: Origin header of the request, if any
        allowed_origins: Configured origins; "*" means any

    Returns:
        Headers to set (may be empty)
    """
    if "*" in allowed_origins:
        return {
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": ALLOW_METHODS,
            "Access-Control-Allow-Headers": ALLOW_HEADERS,
        }

    headers = {"Vary": "Origin"}
    if origin and origin in allowed_origins:
        headers.update({
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": ALLOW_METHODS,
            "Access-Control-Allow-Headers": ALLOW_HEADERS,
        })
    return headers


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Apply cors_headers() to every response under `path_prefix`."""

    def __init__(self, app, allowed_origins: list[str], path_prefix: str = "/api/"):
        super().__init__(app)
        self.allowed_origins = allowed_origins
        self.path_prefix = path_prefix

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        if request.url.path.startswith(self.path_prefix):
            for name, value in cors_headers(request.headers.get("origin"), self.allowed_origins).items():
                response.headers[name] = value
        return response
