from __future__ import annotations

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from portal.core.config import Settings

BASELINE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds browser hardening headers; token-bearing auth responses are never cached."""

    def __init__(self, app, *, settings: Settings) -> None:
        super().__init__(app)
        self._headers = dict(BASELINE_HEADERS)
        if settings.security_enable_hsts:
            max_age = max(1, settings.security_hsts_max_age_seconds)
            self._headers["Strict-Transport-Security"] = f"max-age={max_age}; includeSubDomains"
        self._auth_prefix = f"{settings.api_prefix}/auth"

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in self._headers.items():
            response.headers.setdefault(name, value)
        if request.url.path.startswith(self._auth_prefix):
            response.headers["Cache-Control"] = "no-store"
        return response


def _declared_length(request: Request) -> int:
    try:
        return int(request.headers.get("content-length") or 0)
    except ValueError:
        return 0


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, max_bytes: int) -> None:
        super().__init__(app)
        self._max_bytes = max(1, max_bytes)

    async def dispatch(self, request: Request, call_next) -> Response:
        size = _declared_length(request)
        if size <= self._max_bytes:
            return await call_next(request)
        return JSONResponse(
            status_code=413,
            content={
                "success": False,
                "message": f"Request body of {size} bytes exceeds the {self._max_bytes} byte limit",
                "details": {"max_bytes": self._max_bytes},
            },
        )
