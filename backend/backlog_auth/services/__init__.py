# Backlog Auth Services
from backlog_auth.services.account_lockout import LockoutConfig, LockoutGuard, LockoutStatus
from backlog_auth.services.audit import SecurityAuditLogger, get_audit_logger
from backlog_auth.services.auth_gate import AuthenticationGate
from backlog_auth.services.maintenance import SessionMaintenanceService
from backlog_auth.services.session import RefreshCookiePolicy, SessionManager, SessionResult
from backlog_auth.services.token_blacklist import RevocationLedger, RevocationStats
from backlog_auth.services.tokens import TokenClaims, TokenCodec, TokenPair

__all__ = [
    "AuthenticationGate",
    "LockoutConfig",
    "LockoutGuard",
    "LockoutStatus",
    "RefreshCookiePolicy",
    "RevocationLedger",
    "RevocationStats",
    "SecurityAuditLogger",
    "SessionMaintenanceService",
    "SessionManager",
    "SessionResult",
    "TokenClaims",
    "TokenCodec",
    "TokenPair",
    "get_audit_logger",
]
