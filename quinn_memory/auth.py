"""Bearer token gate for the HTTP transport."""

import hmac
from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

PUBLIC_PATHS = ("/health",)


class BearerTokenMiddleware(BaseHTTPMiddleware):
    """Rejects requests that do not carry `Authorization: Bearer <token>`.

    Paths in `public_paths` and CORS preflight requests pass through.
    """

    def __init__(self, app: ASGIApp, token: str, public_paths: Iterable[str] = PUBLIC_PATHS):
        super().__init__(app)
        self._token = token
        self._public_paths = frozenset(public_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self._public_paths or request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        if not auth_header.startswith("Bearer "):
            return JSONResponse({"error": "Bearer token required"}, status_code=401)

        token = auth_header[len("Bearer "):]
        if not hmac.compare_digest(token.encode(), self._token.encode()):
            return JSONResponse({"error": "Invalid bearer token"}, status_code=401)

        return await call_next(request)
