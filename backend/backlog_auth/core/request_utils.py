"""Request helpers shared by the audit logger and rate limiter."""

import ipaddress
import logging

from fastapi import Request

logger = logging.getLogger(__name__)

TRUSTED_PROXY_HOSTS = ("127.0.0.1", "::1", "localhost")


def _is_valid_ip(ip_str: str) -> bool:
    """Check if a string is a valid IP address."""
    try:
        ipaddress.ip_address(ip_str)
        return True
    except ValueError:
        return False


def get_client_ip(request: Request) -> str | None:
    """Get the client IP address from a request.

    X-Real-IP is honored only when the direct peer is a local reverse proxy.
    X-Forwarded-For is never trusted since clients can set it freely.
    """
    if request.client and request.client.host in TRUSTED_PROXY_HOSTS:
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip = real_ip.strip()
            if _is_valid_ip(ip):
                return ip
            logger.warning(f"Invalid X-Real-IP: {real_ip}")

    if request.client:
        return request.client.host

    return None


def get_session_user_id(request: Request) -> int | None:
    """Return the user id stored in the browser session, if any.

    Works whether or not SessionMiddleware is installed.
    """
    session = request.scope.get("session")
    if not session:
        return None
    raw = session.get("user_id")
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed user_id in browser session")
        return None
