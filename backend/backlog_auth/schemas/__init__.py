# Backlog Auth Schemas
from backlog_auth.schemas.admin import (
    CleanupResponse,
    LockStatusResponse,
    RevokeUserTokensRequest,
    RevokeUserTokensResponse,
    SessionStatsResponse,
    UnlockAccountRequest,
    UnlockAccountResponse,
)
from backlog_auth.schemas.auth import (
    AuthStatusResponse,
    CurrentUserResponse,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    SessionResponse,
    UserResponse,
)

__all__ = [
    "AuthStatusResponse",
    "CleanupResponse",
    "CurrentUserResponse",
    "LockStatusResponse",
    "LoginRequest",
    "MessageResponse",
    "RefreshRequest",
    "RevokeUserTokensRequest",
    "RevokeUserTokensResponse",
    "SessionResponse",
    "SessionStatsResponse",
    "UnlockAccountRequest",
    "UnlockAccountResponse",
    "UserResponse",
]
