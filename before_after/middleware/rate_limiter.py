"""Rate limiting middleware for the API."""

import logging
from typing import Any, cast

from fastapi import FastAPI, Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from ..config import Config

logger = logging.getLogger(__name__)

# Filled from configuration when the app is created
_limits: dict[str, str] = {
    "public": "60 per minute",
    "admin": "30 per minute",
}


def get_client_identifier(request: Request) -> str:
    """Get client identifier for rate limiting.

    Uses the admin API key if present, otherwise falls back to IP address.
    """
    api_key = request.headers.get("x-api-key")
    if api_key:
        return f"key:{api_key}"

    return get_remote_address(request)


# Create the limiter instance
limiter = Limiter(key_func=get_client_identifier)


def get_limiter() -> Limiter:
    """Get the configured limiter instance."""
    return limiter


def public_rate_limit() -> str:
    """Limit applied to public game endpoints."""
    return _limits["public"]


def admin_rate_limit() -> str:
    """Limit applied to admin endpoints."""
    return _limits["admin"]


class RateLimitMiddleware:
    """Custom rate limiting middleware with configuration support."""

    def __init__(self, app: FastAPI, config: Config):
        """Initialize rate limiting middleware.

        Args:
            app: FastAPI application instance
            config: Application configuration
        """
        self.app = app
        self.config = config
        rate_limit = self.config.security.rate_limit

        # Decorated endpoints look the limiter up on the app state
        app.state.limiter = limiter

        if rate_limit.enabled:
            limiter.enabled = True
            _limits["public"] = self.get_rate_limit_string()
            _limits["admin"] = f"{rate_limit.admin_requests_per_minute} per minute"

            app.add_exception_handler(
                RateLimitExceeded, cast(Any, _rate_limit_exceeded_handler)
            )

            logger.info(
                f"Rate limiting enabled: {rate_limit.max_requests_per_minute} "
                f"requests per minute ({rate_limit.admin_requests_per_minute} for admin)"
            )
        else:
            limiter.enabled = False
            logger.info("Rate limiting disabled")

    def get_rate_limit_string(self) -> str:
        """Get the public rate limit string for slowapi.

        Returns rate limit in format: "X per Y"
        """
        rpm = self.config.security.rate_limit.max_requests_per_minute
        return f"{rpm} per minute"
