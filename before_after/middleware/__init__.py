"""Middleware for the before-after-api application."""

from .rate_limiter import RateLimitMiddleware, get_limiter

__all__ = ["RateLimitMiddleware", "get_limiter"]
