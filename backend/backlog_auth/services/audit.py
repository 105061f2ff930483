"""Security Audit Logging Service.

Emits structured security events (revocations, lockouts, admin actions,
authentication outcomes) to the ``backlog.security`` logger. Metadata is
redacted before it leaves this module: secrets are dropped, emails are
partially masked and user identifiers are replaced with placeholders.
"""

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from fastapi import Request

from backlog_auth.core.config import settings
from backlog_auth.core.logging import get_logger
from backlog_auth.core.request_utils import get_client_ip


class SecurityEvent(str, Enum):
    """Security audit event types."""

    AUTH_SUCCESS = "auth_success"
    AUTH_FAILURE = "auth_failure"
    TOKEN_REVOKED = "token_revoked"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_UNLOCKED = "account_unlocked"
    ADMIN_ACCOUNT_UNLOCK = "admin_account_unlock"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    ADMIN_ACTION = "admin_action"
    SYSTEM_STARTUP = "system_startup"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


_SEVERITY_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.WARNING,
    Severity.HIGH: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}

# Compared after lowercasing and stripping underscores/dashes
_SENSITIVE_KEYS = {
    "password",
    "token",
    "accesstoken",
    "refreshtoken",
    "secret",
    "clientsecret",
    "authorization",
    "cookie",
    "session",
    "apikey",
}
_USER_ID_KEYS = {"userid", "useridentifier", "ownerid", "targetuserid"}


def _normalize_key(key: str) -> str:
    return key.lower().replace("_", "").replace("-", "")


def mask_email(email: str) -> str:
    """Keep the first two characters of the local part and the domain."""
    local, sep, domain = email.partition("@")
    if not sep or not domain:
        return "[REDACTED]"
    return f"{local[:2]}***@{domain}"


def redact_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of metadata that is safe to log."""
    redacted: dict[str, Any] = {}
    for key, value in metadata.items():
        norm = _normalize_key(key)
        if norm in _SENSITIVE_KEYS:
            redacted[key] = "[REDACTED]" if value is not None else None
        elif norm in _USER_ID_KEYS:
            redacted[key] = "[USER_ID_REDACTED]" if value is not None else None
        elif norm == "id":
            redacted[key] = "[ID_REDACTED]" if value is not None else None
        elif norm.endswith("email") and isinstance(value, str):
            redacted[key] = mask_email(value)
        elif isinstance(value, dict):
            redacted[key] = redact_metadata(value)
        else:
            redacted[key] = value
    return redacted


class SecurityAuditLogger:
    """Writes security audit events with redacted metadata.

    All events include:
    - Timestamp, event type and severity
    - Human readable message
    - Redacted metadata
    - Request context (client IP, user agent, method, path) when available
    """

    def __init__(self, logger: logging.Logger | None = None, environment: str | None = None):
        self._logger = logger or get_logger("security")
        self._environment = environment or settings.environment

    def log_event(
        self,
        event: SecurityEvent | str,
        severity: Severity,
        message: str,
        metadata: dict[str, Any] | None = None,
        request: Request | None = None,
    ) -> dict[str, Any]:
        """Log a security event and return the structured entry."""
        event_name = event.value if isinstance(event, SecurityEvent) else event
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "event": event_name,
            "severity": severity.value,
            "message": message,
            "metadata": redact_metadata(metadata or {}),
            "request": self._request_context(request),
            "environment": self._environment,
        }
        self._logger.log(
            _SEVERITY_LEVELS[severity],
            f"[SECURITY] {severity.value.upper()} - {message}",
            extra={"security_event": entry},
        )
        return entry

    @staticmethod
    def _request_context(request: Request | None) -> dict[str, Any] | None:
        if request is None:
            return None
        return {
            "ip": get_client_ip(request),
            "user_agent": request.headers.get("User-Agent"),
            "method": request.method,
            "path": request.url.path,
            "origin": request.headers.get("Origin"),
        }

    # Convenience methods for common events

    def log_auth_success(
        self, user_id: int, request: Request | None = None, **metadata: Any
    ) -> dict[str, Any]:
        return self.log_event(
            SecurityEvent.AUTH_SUCCESS,
            Severity.LOW,
            "User authentication successful",
            {"user_id": user_id, **metadata},
            request,
        )

    def log_auth_failure(
        self, reason: str, request: Request | None = None, **metadata: Any
    ) -> dict[str, Any]:
        return self.log_event(
            SecurityEvent.AUTH_FAILURE,
            Severity.MEDIUM,
            f"Authentication failed: {reason}",
            {"reason": reason, **metadata},
            request,
        )

    def log_token_revoked(
        self, token_type: str, reason: str | None, **metadata: Any
    ) -> dict[str, Any]:
        return self.log_event(
            SecurityEvent.TOKEN_REVOKED,
            Severity.MEDIUM,
            f"Token revoked: {token_type}",
            {"token_type": token_type, "reason": reason, **metadata},
        )

    def log_account_locked(self, failed_attempts: int, **metadata: Any) -> dict[str, Any]:
        return self.log_event(
            SecurityEvent.ACCOUNT_LOCKED,
            Severity.HIGH,
            f"Account locked due to {failed_attempts} failed attempts",
            {"failed_attempts": failed_attempts, **metadata},
        )

    def log_rate_limit_exceeded(
        self, endpoint: str, request: Request | None = None
    ) -> dict[str, Any]:
        return self.log_event(
            SecurityEvent.RATE_LIMIT_EXCEEDED,
            Severity.MEDIUM,
            f"Rate limit exceeded for {endpoint}",
            {"endpoint": endpoint},
            request,
        )

    def log_admin_action(
        self, action: str, request: Request | None = None, **metadata: Any
    ) -> dict[str, Any]:
        return self.log_event(
            SecurityEvent.ADMIN_ACTION,
            Severity.MEDIUM,
            f"Admin action: {action}",
            {"action": action, **metadata},
            request,
        )


# Dependency injection helper
_audit_logger: SecurityAuditLogger | None = None


def get_audit_logger() -> SecurityAuditLogger:
    """Get the audit logger singleton."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = SecurityAuditLogger()
    return _audit_logger
