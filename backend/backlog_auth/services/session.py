"""Session manager: login, refresh, logout and admin revoke-all workflows.

None of the workflows are transactional. Each step is idempotent and a
partial failure leaves whatever earlier steps already wrote.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from fastapi import Request, Response

from backlog_auth.core.config import Settings
from backlog_auth.models.user import User
from backlog_auth.services.account_lockout import LockoutGuard
from backlog_auth.services.audit import SecurityAuditLogger
from backlog_auth.services.errors import (
    AccountLockedError,
    InvalidCredentialError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    InvalidTokenTypeError,
    RefreshTokenRequiredError,
    TokenRevokedError,
)
from backlog_auth.services.google_oauth import GoogleProfile
from backlog_auth.services.passwords import verify_password
from backlog_auth.services.stores import UserStore
from backlog_auth.services.token_blacklist import RevocationLedger
from backlog_auth.services.tokens import TokenCodec, TokenPair

logger = logging.getLogger(__name__)

REFRESH_COOKIE_NAME = "refreshToken"
REFRESH_COOKIE_PATH = "/auth/refresh"
LOGOUT_REASON = "User logout"
ADMIN_REVOKE_REASON = "Admin revocation"


@dataclass(frozen=True)
class SessionResult:
    """Outcome of a successful login or refresh."""

    user: User
    tokens: TokenPair

    @property
    def access_token(self) -> str:
        return self.tokens.access_token

    @property
    def refresh_token(self) -> str:
        return self.tokens.refresh_token


class RefreshCookiePolicy:
    """Attributes of the refresh-token cookie.

    Setting and clearing share cookie_attributes(); a cookie is only removed
    by the browser when path, secure and samesite match the ones it was set
    with.
    """

    def __init__(self, *, production: bool, max_age: int, name: str = REFRESH_COOKIE_NAME):
        self.production = production
        self.max_age = max_age
        self.name = name

    @classmethod
    def from_settings(cls, settings: Settings) -> "RefreshCookiePolicy":
        return cls(
            production=settings.is_production,
            max_age=settings.refresh_token_expire_days * 24 * 60 * 60,
        )

    @property
    def samesite(self) -> str:
        return "strict" if self.production else "lax"

    def cookie_attributes(self) -> dict:
        return {
            "key": self.name,
            "path": REFRESH_COOKIE_PATH,
            "httponly": True,
            "secure": self.production,
            "samesite": self.samesite,
        }

    def set_refresh_cookie(self, response: Response, token: str) -> None:
        response.set_cookie(value=token, max_age=self.max_age, **self.cookie_attributes())

    def clear_refresh_cookie(self, response: Response) -> None:
        response.delete_cookie(**self.cookie_attributes())

    def read(self, request: Request) -> str | None:
        return request.cookies.get(self.name) or None


class SessionManager:
    """Composes codec, ledger, lockout guard and user store into workflows."""

    def __init__(
        self,
        users: UserStore,
        codec: TokenCodec,
        ledger: RevocationLedger,
        guard: LockoutGuard,
        audit: SecurityAuditLogger,
    ):
        self.users = users
        self.codec = codec
        self.ledger = ledger
        self.guard = guard
        self.audit = audit

    async def link_or_create_user(self, profile: GoogleProfile) -> User:
        """Resolve a Google profile to a local user.

        Lookup order: Google id, then email (linking the Google id onto the
        existing account), else a new account named after the email prefix.
        """
        user = await self.users.find_by_google_id(profile.provider_id)
        if user is not None:
            if profile.picture and profile.picture != user.profile_picture:
                user = await self.users.update_fields(user.id, profile_picture=profile.picture) or user
            return user

        user = await self.users.find_by_email(profile.email)
        if user is not None:
            linked = await self.users.update_fields(
                user.id,
                google_id=profile.provider_id,
                provider="google",
                profile_picture=profile.picture or user.profile_picture,
            )
            logger.info("Linked Google account to existing user")
            return linked or user

        username = await self._available_username(profile.email.split("@")[0])
        user = await self.users.create(
            email=profile.email,
            username=username,
            first_name=profile.given_name or "",
            last_name=profile.family_name or "",
            google_id=profile.provider_id,
            profile_picture=profile.picture,
            provider="google",
        )
        logger.info("Created new user from Google profile")
        return user

    async def _available_username(self, base: str) -> str:
        base = base or "user"
        candidate = base
        suffix = 1
        while await self.users.find_by_username(candidate) is not None:
            suffix += 1
            candidate = f"{base}{suffix}"
        return candidate

    async def authenticate_password(
        self, email: str, password: str, request: Request | None = None
    ) -> User:
        """Check an email/password pair, honoring the account lock.

        Locked, unknown and wrong-password outcomes all surface as
        INVALID_CREDENTIALS.
        """
        status = await self.guard.check_status(email)
        if status.is_locked:
            self.audit.log_auth_failure(
                "account_locked",
                request,
                email=email,
                lock_minutes_remaining=status.lock_minutes_remaining,
            )
            raise AccountLockedError(status.lock_minutes_remaining)

        user = await self.users.find_by_email(email)
        password_ok = verify_password(password, user.password_hash if user else None)
        if user is None or not password_ok:
            lock_status = await self.guard.record_failed_attempt(email)
            self.audit.log_auth_failure(
                "invalid_credentials",
                request,
                email=email,
                attempts_remaining=lock_status.attempts_remaining if lock_status else None,
            )
            raise InvalidCredentialsError()

        return user

    async def login(self, user: User, request: Request | None = None) -> SessionResult:
        """Issue a fresh credential pair for a verified user.

        The new refresh token overwrites the stored one, superseding any
        earlier session of this user.
        """
        await self.guard.reset_on_success(user.id)
        tokens = self.codec.issue_pair(user)
        updated = await self.users.update_fields(
            user.id,
            refresh_token=tokens.refresh_token,
            last_login=datetime.now(UTC),
        )
        self.audit.log_auth_success(user.id, request, provider=user.provider)
        return SessionResult(user=updated or user, tokens=tokens)

    async def refresh(self, presented_token: str | None) -> SessionResult:
        """Exchange a live refresh token for a new pair.

        Expired, malformed, superseded and orphaned tokens all fail with the
        same INVALID_REFRESH_TOKEN error.
        """
        if not presented_token:
            raise RefreshTokenRequiredError()

        if await self.ledger.is_revoked(presented_token):
            raise TokenRevokedError("Refresh token has been revoked")

        try:
            claims = self.codec.validate(presented_token)
        except InvalidCredentialError as e:
            raise InvalidRefreshTokenError() from e

        if claims.kind != "refresh":
            raise InvalidTokenTypeError("Refresh token required")

        user = await self.users.find_by_id(claims.subject_id)
        if user is None or user.refresh_token != presented_token:
            raise InvalidRefreshTokenError()

        tokens = self.codec.issue_pair(user)
        updated = await self.users.update_fields(
            user.id,
            refresh_token=tokens.refresh_token,
            last_login=datetime.now(UTC),
        )
        logger.debug("Refresh token rotated")
        return SessionResult(user=updated or user, tokens=tokens)

    async def _resolve_logout_identity(
        self, access_token: str | None, session_user_id: int | None
    ) -> int | None:
        if access_token:
            try:
                if not await self.ledger.is_revoked(access_token):
                    claims = self.codec.validate(access_token)
                    if claims.kind == "access":
                        return claims.subject_id
            except Exception as e:
                logger.info(f"Ignoring unusable credential on logout: {e}")
        return session_user_id

    async def logout(
        self, access_token: str | None = None, session_user_id: int | None = None
    ) -> int | None:
        """Revoke whatever the caller can be identified by.

        Never raises: a client that asked to log out must always be able to
        discard its credentials. Returns the resolved user id, if any.
        """
        user_id = await self._resolve_logout_identity(access_token, session_user_id)
        if user_id is None:
            return None

        if access_token:
            try:
                await self.ledger.record(access_token, user_id, "access", LOGOUT_REASON)
            except Exception as e:
                logger.error(f"Failed to blacklist access token on logout: {e}")

        try:
            await self.ledger.revoke_all_for_user(user_id, reason=LOGOUT_REASON)
        except Exception as e:
            logger.error(f"Failed to revoke refresh token on logout: {e}")

        return user_id

    async def admin_revoke_all(
        self,
        user_id: int,
        reason: str | None = None,
        actor: str | None = None,
        request: Request | None = None,
    ) -> None:
        """Operator-triggered revocation of a user's refresh token."""
        await self.ledger.revoke_all_for_user(user_id, reason=reason or ADMIN_REVOKE_REASON)
        self.audit.log_admin_action(
            "revoke_all_tokens",
            request,
            target_user_id=user_id,
            reason=reason or ADMIN_REVOKE_REASON,
            actor_email=actor,
        )
