"""Admin API endpoints for session management and incident response.

Every route requires ``require_admin``.
"""

import logging
from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Depends, Request

from backlog_auth.api.deps import (
    get_ledger,
    get_lockout_guard,
    get_session_manager,
    get_user_store,
    require_admin,
)
from backlog_auth.models.user import User
from backlog_auth.schemas.admin import (
    AdminUserRef,
    CleanupData,
    CleanupResponse,
    LockoutConfigResponse,
    LockStatusData,
    LockStatusResponse,
    RevokeUserTokensRequest,
    RevokeUserTokensResponse,
    SessionStatsData,
    SessionStatsResponse,
    TokenStats,
    UnlockAccountRequest,
    UnlockAccountResponse,
    UnlockedAccount,
    UserStats,
)
from backlog_auth.services.account_lockout import LockoutGuard
from backlog_auth.services.errors import AuthError, UserNotFoundError
from backlog_auth.services.session import SessionManager
from backlog_auth.services.stores import UserStore
from backlog_auth.services.token_blacklist import RevocationLedger

logger = logging.getLogger(__name__)

ACTIVE_WINDOW = timedelta(hours=24)

router = APIRouter(prefix="/admin", tags=["admin"])


def _not_found() -> UserNotFoundError:
    return UserNotFoundError("User not found", status_code=404)


def _lockout_config(guard: LockoutGuard) -> LockoutConfigResponse:
    config = guard.config()
    return LockoutConfigResponse(
        max_failed_attempts=config.max_failed_attempts,
        lockout_duration_minutes=config.lockout_duration_minutes,
    )


@router.post("/tokens/revoke-user", response_model=RevokeUserTokensResponse)
async def revoke_user_tokens(
    body: RevokeUserTokensRequest,
    request: Request,
    admin: User = Depends(require_admin),
    users: UserStore = Depends(get_user_store),
    manager: SessionManager = Depends(get_session_manager),
) -> RevokeUserTokensResponse:
    """Revoke a user's refresh token so every session must log in again."""
    user = await users.find_by_id(body.user_id)
    if user is None:
        raise _not_found()

    reason = body.reason or f"Admin revocation by {admin.email}"
    await manager.admin_revoke_all(user.id, reason=reason, actor=admin.email, request=request)
    return RevokeUserTokensResponse(
        message=f"All tokens revoked for user {user.username}",
        data=AdminUserRef(user_id=user.id, email=user.email),
    )


@router.post("/accounts/unlock", response_model=UnlockAccountResponse)
async def unlock_account(
    body: UnlockAccountRequest,
    request: Request,
    admin: User = Depends(require_admin),
    guard: LockoutGuard = Depends(get_lockout_guard),
) -> UnlockAccountResponse:
    """Clear the failed-attempt counter and lock of an account."""
    identifier: int | str | None = body.user_id if body.user_id is not None else body.email
    if identifier is None or identifier == "":
        raise AuthError(
            "User ID or email is required", code="IDENTIFIER_REQUIRED", status_code=400
        )

    try:
        user = await guard.admin_unlock(identifier)
    except UserNotFoundError as e:
        raise _not_found() from e

    guard.audit.log_admin_action("unlock_account", request, actor_email=admin.email)
    return UnlockAccountResponse(
        message=f"Account unlocked for user {user.username}",
        data=UnlockedAccount(
            user_id=user.id,
            email=user.email,
            failed_login_attempts=user.failed_login_attempts,
            locked_until=user.locked_until,
        ),
    )


@router.get("/accounts/lock-status/{identifier}", response_model=LockStatusResponse)
async def get_lock_status(
    identifier: str,
    _admin: User = Depends(require_admin),
    users: UserStore = Depends(get_user_store),
    guard: LockoutGuard = Depends(get_lockout_guard),
) -> LockStatusResponse:
    """Report lock status for a numeric user id or an email."""
    email = identifier
    if identifier.isascii() and identifier.isdigit():
        user = await users.find_by_id(int(identifier))
        if user is None:
            raise _not_found()
        email = user.email

    status = await guard.check_status(email)
    return LockStatusResponse(
        data=LockStatusData(
            identifier=identifier,
            email=email,
            is_locked=status.is_locked,
            attempts_remaining=status.attempts_remaining,
            lock_minutes_remaining=status.lock_minutes_remaining,
            config=_lockout_config(guard),
        )
    )


@router.post("/tokens/cleanup", response_model=CleanupResponse)
async def cleanup_tokens(
    request: Request,
    admin: User = Depends(require_admin),
    ledger: RevocationLedger = Depends(get_ledger),
) -> CleanupResponse:
    """Delete expired revocation entries now instead of waiting for the job."""
    removed = await ledger.cleanup()
    ledger.audit.log_admin_action(
        "cleanup_tokens", request, actor_email=admin.email, removed=removed
    )
    return CleanupResponse(
        message=f"Cleaned up {removed} expired tokens",
        data=CleanupData(cleaned_count=removed),
    )


@router.get("/session-stats", response_model=SessionStatsResponse)
async def get_session_stats(
    _admin: User = Depends(require_admin),
    users: UserStore = Depends(get_user_store),
    ledger: RevocationLedger = Depends(get_ledger),
    guard: LockoutGuard = Depends(get_lockout_guard),
) -> SessionStatsResponse:
    """Counts of users, locks and revocation entries."""
    now = datetime.now(UTC)
    revocations = await ledger.stats()
    return SessionStatsResponse(
        data=SessionStatsData(
            users=UserStats(
                total=await users.count_users(),
                active_in_24h=await users.count_active_since(now - ACTIVE_WINDOW),
                locked=await users.count_locked(now),
            ),
            tokens=TokenStats(
                blacklisted=revocations.blacklisted,
                expired=revocations.expired,
                needs_cleanup=revocations.needs_cleanup,
            ),
            config=_lockout_config(guard),
            timestamp=now,
        )
    )
