"""Security middleware.

Key protections:
- Security headers on every response
- Request body size limit (413), including chunked bodies
"""

from __future__ import annotations

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

log = structlog.get_logger(__name__)

# Request bodies here are small JSON documents
DEFAULT_MAX_REQUEST_SIZE = 1024 * 1024

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

_STATIC_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
    "X-Permitted-Cross-Domain-Policies": "none",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    # Responses carry personal data
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=(), payment=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses; HSTS only in production."""

    def __init__(self, app: ASGIApp, *, is_production: bool = False) -> None:
        super().__init__(app)
        self._is_production = is_production

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for name, value in _STATIC_HEADERS.items():
            response.headers[name] = value
        if self._is_production:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject request bodies larger than max_size (413).

    A declared Content-Length is checked before the body is read. Bodies sent
    without one (chunked transfer) are read up to max_size and then replayed
    to the route.
    """

    def __init__(self, app: ASGIApp, *, max_size: int = DEFAULT_MAX_REQUEST_SIZE) -> None:
        super().__init__(app)
        self._max_size = max_size

    def _too_large(self) -> JSONResponse:
        return JSONResponse(
            status_code=413,
            content={"detail": f"Request body too large. Maximum allowed: {self._max_size} bytes"},
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                declared = int(content_length)
            except ValueError:
                return JSONResponse(status_code=400, content={"detail": "Invalid Content-Length"})
            if declared > self._max_size:
                log.warning(
                    "security.request_too_large",
                    content_length=declared,
                    max_size=self._max_size,
                    path=request.url.path,
                    method=request.method,
                )
                return self._too_large()
        elif request.method in _BODY_METHODS:
            chunks: list[bytes] = []
            received = 0
            async for chunk in request.stream():
                received += len(chunk)
                if received > self._max_size:
                    log.warning(
                        "security.chunked_request_too_large",
                        received=received,
                        max_size=self._max_size,
                        path=request.url.path,
                        method=request.method,
                    )
                    return self._too_large()
                chunks.append(chunk)
            # The stream is consumed; the cached body is what call_next replays.
            request._body = b"".join(chunks)  # type: ignore[attr-defined]
        return await call_next(request)
