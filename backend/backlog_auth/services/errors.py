"""Authentication error taxonomy.

Every error carries a stable machine-readable ``code`` and a human
``message``. The API layer renders them as
``{"error": code, "message": message, "status": status_code}``.
"""


class AuthError(Exception):
    """Base authentication error."""

    code: str = "AUTHENTICATION_ERROR"
    status_code: int = 401
    default_message: str = "Authentication failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class AuthenticationRequiredError(AuthError):
    """No credential supplied at all."""

    code = "AUTHENTICATION_REQUIRED"
    default_message = "Authentication required to access this resource"


class InvalidCredentialError(AuthError):
    """Token failed signature, issuer, audience, expiry or format checks."""

    code = "INVALID_TOKEN"
    default_message = "Invalid or expired access token"


class TokenExpiredError(InvalidCredentialError):
    """Token is well-formed but past its expiry."""


class InvalidTokenTypeError(AuthError):
    """Token is valid but of the wrong kind (access vs refresh)."""

    code = "INVALID_TOKEN_TYPE"
    default_message = "Access token required"


class TokenRevokedError(AuthError):
    """Token is structurally valid but present in the revocation ledger."""

    code = "TOKEN_REVOKED"
    default_message = "Token has been revoked"


class UserNotFoundError(AuthError):
    """Token subject (or admin target) no longer exists."""

    code = "USER_NOT_FOUND"
    default_message = "User account no longer exists"


class RefreshTokenRequiredError(AuthError):
    """Refresh requested without any refresh token."""

    code = "REFRESH_TOKEN_REQUIRED"
    status_code = 400
    default_message = "Refresh token is required"


class InvalidRefreshTokenError(AuthError):
    """Refresh token expired, malformed or not the user's live token.

    Every cause maps to this one error.
    """

    code = "INVALID_REFRESH_TOKEN"
    default_message = "Invalid or expired refresh token"


class InvalidCredentialsError(AuthError):
    """Login failed: unknown account, wrong password, or locked account."""

    code = "INVALID_CREDENTIALS"
    default_message = "Invalid email or password"


class AccountLockedError(InvalidCredentialsError):
    """Login refused because the account is locked.

    Rendered exactly like InvalidCredentialsError; the remaining lock time is
    kept for audit logging only.
    """

    def __init__(self, lock_minutes_remaining: int):
        super().__init__()
        self.lock_minutes_remaining = lock_minutes_remaining


class ForbiddenError(AuthError):
    """Authenticated, but not allowed to perform the operation."""

    code = "FORBIDDEN"
    status_code = 403
    default_message = "Admin privileges required"


class RateLimitExceededError(AuthError):
    """Too many authentication attempts from one client."""

    code = "RATE_LIMIT_EXCEEDED"
    status_code = 429
    default_message = "Too many authentication attempts, please try again later"


class RevocationStoreUnavailable(AuthError):
    """The revocation ledger could not be consulted and fail-open is disabled."""

    code = "AUTHENTICATION_ERROR"
    status_code = 503
    default_message = "Authentication service temporarily unavailable"


class IdentityProviderError(Exception):
    """The external identity provider rejected or failed the exchange."""
