"""FastAPI dependencies wiring stores into the credential components.

Every component is built per request from the request's database session.
Tests replace ``get_user_store`` / ``get_revocation_store`` through
``app.dependency_overrides``.
"""

import logging
from datetime import timedelta

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backlog_auth.core.config import Settings, get_settings
from backlog_auth.core.database import get_db
from backlog_auth.core.request_utils import get_client_ip, get_session_user_id
from backlog_auth.middleware.rate_limit import LoginRateLimiter
from backlog_auth.models.user import User
from backlog_auth.services.account_lockout import LockoutGuard
from backlog_auth.services.audit import SecurityAuditLogger, get_audit_logger
from backlog_auth.services.auth_gate import AuthenticationGate
from backlog_auth.services.errors import AuthError, ForbiddenError, RateLimitExceededError
from backlog_auth.services.google_oauth import GoogleOAuthClient
from backlog_auth.services.session import RefreshCookiePolicy, SessionManager
from backlog_auth.services.stores import (
    RevocationStore,
    SqlRevocationStore,
    SqlUserStore,
    UserStore,
)
from backlog_auth.services.token_blacklist import RevocationLedger
from backlog_auth.services.tokens import TokenCodec

logger = logging.getLogger(__name__)


# --- Stores ---


def get_user_store(db: AsyncSession = Depends(get_db)) -> UserStore:
    return SqlUserStore(db)


def get_revocation_store(db: AsyncSession = Depends(get_db)) -> RevocationStore:
    return SqlRevocationStore(db)


# --- Components ---


def get_codec(config: Settings = Depends(get_settings)) -> TokenCodec:
    return TokenCodec.from_settings(config)


def get_audit() -> SecurityAuditLogger:
    return get_audit_logger()


def get_cookie_policy(config: Settings = Depends(get_settings)) -> RefreshCookiePolicy:
    return RefreshCookiePolicy.from_settings(config)


def get_google_client(config: Settings = Depends(get_settings)) -> GoogleOAuthClient:
    return GoogleOAuthClient.from_settings(config)


def get_ledger(
    store: RevocationStore = Depends(get_revocation_store),
    users: UserStore = Depends(get_user_store),
    codec: TokenCodec = Depends(get_codec),
    audit: SecurityAuditLogger = Depends(get_audit),
    config: Settings = Depends(get_settings),
) -> RevocationLedger:
    return RevocationLedger(store, users, codec, audit, fail_open=config.revocation_fail_open)


def get_lockout_guard(
    users: UserStore = Depends(get_user_store),
    audit: SecurityAuditLogger = Depends(get_audit),
    config: Settings = Depends(get_settings),
) -> LockoutGuard:
    return LockoutGuard(
        users,
        audit,
        max_failed_attempts=config.max_failed_login_attempts,
        lockout_duration=timedelta(minutes=config.lockout_duration_minutes),
        fail_open=config.lockout_fail_open,
    )


def get_session_manager(
    users: UserStore = Depends(get_user_store),
    codec: TokenCodec = Depends(get_codec),
    ledger: RevocationLedger = Depends(get_ledger),
    guard: LockoutGuard = Depends(get_lockout_guard),
    audit: SecurityAuditLogger = Depends(get_audit),
) -> SessionManager:
    return SessionManager(users, codec, ledger, guard, audit)


def get_auth_gate(
    users: UserStore = Depends(get_user_store),
    codec: TokenCodec = Depends(get_codec),
    ledger: RevocationLedger = Depends(get_ledger),
) -> AuthenticationGate:
    return AuthenticationGate(users, codec, ledger)


# --- Request guards ---


async def get_current_user(
    request: Request,
    gate: AuthenticationGate = Depends(get_auth_gate),
) -> User:
    """Dependency resolving the authenticated user or raising a 401."""
    try:
        return await gate.authenticate(
            request.headers.get("Authorization"), get_session_user_id(request)
        )
    except AuthError as e:
        logger.debug(f"Authentication rejected: {e.code}")
        raise
    except Exception as e:
        logger.exception(f"Unexpected authentication error: {e}")
        raise AuthError(
            "Authentication failed", code="AUTHENTICATION_ERROR", status_code=500
        ) from e


async def get_optional_user(
    request: Request,
    gate: AuthenticationGate = Depends(get_auth_gate),
) -> User | None:
    """Dependency resolving the user when possible, else None."""
    return await gate.authenticate_optional(
        request.headers.get("Authorization"), get_session_user_id(request)
    )


async def require_admin(
    user: User = Depends(get_current_user),
    config: Settings = Depends(get_settings),
) -> User:
    """Dependency allowing only operators listed in ADMIN_EMAILS."""
    if config.allow_unrestricted_admin:
        return user
    if user.email.lower() not in config.admin_emails_list:
        get_audit_logger().log_auth_failure("admin_access_denied", user_id=user.id)
        raise ForbiddenError()
    return user


def get_rate_limiter(request: Request) -> LoginRateLimiter:
    return request.app.state.login_rate_limiter


async def enforce_login_rate_limit(
    request: Request,
    limiter: LoginRateLimiter = Depends(get_rate_limiter),
    audit: SecurityAuditLogger = Depends(get_audit),
) -> None:
    """Per-IP limit shared by the login and refresh endpoints."""
    if not limiter.hit(get_client_ip(request)):
        audit.log_rate_limit_exceeded(request.url.path, request)
        raise RateLimitExceededError()
