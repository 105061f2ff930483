"""Pydantic schemas for the admin session-management API."""

from datetime import datetime

from pydantic import Field

from backlog_auth.schemas.auth import CamelModel


class RevokeUserTokensRequest(CamelModel):
    user_id: int = Field(..., ge=1)
    reason: str | None = Field(None, max_length=255)


class UnlockAccountRequest(CamelModel):
    """Either a user id or an email identifies the account; id wins."""

    user_id: int | None = Field(None, ge=1)
    email: str | None = Field(None, max_length=255)


class AdminUserRef(CamelModel):
    user_id: int
    email: str


class UnlockedAccount(AdminUserRef):
    failed_login_attempts: int
    locked_until: datetime | None = None


class LockoutConfigResponse(CamelModel):
    max_failed_attempts: int
    lockout_duration_minutes: int


class LockStatusData(CamelModel):
    identifier: str
    email: str
    is_locked: bool
    attempts_remaining: int
    lock_minutes_remaining: int
    config: LockoutConfigResponse


class CleanupData(CamelModel):
    cleaned_count: int


class UserStats(CamelModel):
    total: int
    active_in_24h: int = Field(serialization_alias="activeIn24h")
    locked: int


class TokenStats(CamelModel):
    blacklisted: int
    expired: int
    needs_cleanup: bool


class SessionStatsData(CamelModel):
    users: UserStats
    tokens: TokenStats
    config: LockoutConfigResponse
    timestamp: datetime


class RevokeUserTokensResponse(CamelModel):
    success: bool = True
    message: str
    data: AdminUserRef


class UnlockAccountResponse(CamelModel):
    success: bool = True
    message: str
    data: UnlockedAccount


class LockStatusResponse(CamelModel):
    success: bool = True
    data: LockStatusData


class CleanupResponse(CamelModel):
    success: bool = True
    message: str
    data: CleanupData


class SessionStatsResponse(CamelModel):
    success: bool = True
    data: SessionStatsData
