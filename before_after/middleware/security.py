"""Security headers middleware."""

import logging
from typing import Any

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Swagger UI needs inline scripts and styles
DOCS_CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline'; "
    "style-src 'self' 'unsafe-inline'; "
    "img-src 'self' data: https:; "
    "font-src 'self' data:; "
    "connect-src 'self'; "
    "frame-ancestors 'none'; "
    "base-uri 'self'; "
    "form-action 'self'"
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security headers to every response.

    Admin responses are additionally marked as non-cacheable so card edits
    are never served stale from an intermediate cache.
    """

    DEFAULT_HEADERS: dict[str, str] = {
        "X-Content-Type-Options": "nosniff",
        "X-XSS-Protection": "1; mode=block",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
        "X-Download-Options": "noopen",
        "X-DNS-Prefetch-Control": "off",
    }

    def __init__(
        self,
        app: Any,
        custom_headers: dict[str, str] | None = None,
        admin_prefix: str = "/api/admin",
    ):
        """Initialize security headers middleware.

        Args:
            app: FastAPI application instance
            custom_headers: Optional custom headers to add/override
            admin_prefix: Path prefix of admin routes
        """
        super().__init__(app)
        self.security_headers = self.DEFAULT_HEADERS.copy()
        if custom_headers:
            self.security_headers.update(custom_headers)
        self.admin_prefix = admin_prefix
        logger.info(
            f"Security headers middleware initialized with {len(self.security_headers)} headers"
        )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Add security headers to the response.

        Args:
            request: The incoming request
            call_next: The next middleware/handler in the chain

        Returns:
            Response with security headers added
        """
        response = await call_next(request)

        for header_name, header_value in self.security_headers.items():
            response.headers[header_name] = header_value

        if request.url.path.startswith(self.admin_prefix):
            response.headers["Cache-Control"] = "no-store"

        content_type = response.headers.get("content-type", "").lower()
        if "text/html" in content_type:
            response.headers["Content-Security-Policy"] = DOCS_CONTENT_SECURITY_POLICY

        return response
