"""
Security headers for API responses.

The API only ever returns JSON and redirects, so the policy is the
locked-down one for a resource server: nothing may be loaded, framed or
sniffed. Auth responses are never cached.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from core.config import settings

BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Permissions-Policy": "camera=(), geolocation=(), microphone=(), payment=(), usb=()",
}

# JSON-only: no scripts, styles or frames
API_CSP = "default-src 'none'; frame-ancestors 'none'; base-uri 'none'; form-action 'none'"

HSTS = "max-age=31536000; includeSubDomains"

NO_STORE_PREFIXES = ("/api/auth",)

# Swagger/ReDoc pages load their own scripts
DOCS_PREFIXES = ("/docs", "/redoc", "/openapi.json")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Stamp BASE_HEADERS on every response; CSP outside debug, HSTS in production."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        for name, value in BASE_HEADERS.items():
            response.headers.setdefault(name, value)

        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"

        if not settings.DEBUG and not request.url.path.startswith(DOCS_PREFIXES):
            response.headers["Content-Security-Policy"] = API_CSP
        if settings.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = HSTS

        return response
