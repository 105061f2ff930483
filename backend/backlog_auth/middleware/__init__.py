"""Middleware module for the backlog auth backend."""

from backlog_auth.middleware.rate_limit import LoginRateLimiter
from backlog_auth.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "LoginRateLimiter",
    "SecurityHeadersMiddleware",
]
