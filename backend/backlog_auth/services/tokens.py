"""Credential codec: signed, time-limited access and refresh tokens.

Pure functions of the signing secret and the claims. Revocation is checked by
callers through the RevocationLedger, never here.
"""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Literal, Protocol

import jwt
from jwt.exceptions import ExpiredSignatureError, PyJWTError

from backlog_auth.core.config import Settings
from backlog_auth.services.errors import InvalidCredentialError, TokenExpiredError

TokenKind = Literal["access", "refresh"]

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class TokenSubject(Protocol):
    """Anything with the identity fields embedded in tokens."""

    id: int
    email: str
    username: str


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of an access or refresh token."""

    subject_id: int
    email: str
    kind: str
    issued_at: datetime
    expires_at: datetime
    issuer: str
    audience: str
    username: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int


class TokenCodec:
    """Creates and validates JWT credentials for this service."""

    def __init__(
        self,
        secret_key: str,
        *,
        algorithm: str = "HS256",
        issuer: str = "game-backlog-tracker",
        audience: str = "game-backlog-tracker-client",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCodec":
        return cls(
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
        )

    def _encode(self, claims: dict[str, Any], ttl: timedelta) -> str:
        now = datetime.now(UTC)
        payload = {
            **claims,
            "iat": now,
            "exp": now + ttl,
            "iss": self.issuer,
            "aud": self.audience,
            # Two tokens minted in the same second must still be distinct strings
            "jti": secrets.token_hex(16),
        }
        return str(jwt.encode(payload, self._secret_key, algorithm=self.algorithm))

    def issue_access(self, user: TokenSubject) -> str:
        """Create a short-lived access token."""
        return self._encode(
            {
                "userId": user.id,
                "email": user.email,
                "username": user.username,
                "type": "access",
            },
            self.access_ttl,
        )

    def issue_refresh(self, user: TokenSubject) -> str:
        """Create a long-lived refresh token.

        Carries only what is needed to mint a new access token, so no username.
        """
        return self._encode(
            {
                "userId": user.id,
                "email": user.email,
                "type": "refresh",
            },
            self.refresh_ttl,
        )

    def issue_pair(self, user: TokenSubject) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access(user),
            refresh_token=self.issue_refresh(user),
            token_type="Bearer",
            expires_in=int(self.access_ttl.total_seconds()),
        )

    def validate(self, token: str) -> TokenClaims:
        """Verify signature, issuer, audience and expiry in one step.

        Raises:
            TokenExpiredError: the token is past its ``exp``.
            InvalidCredentialError: any other verification failure.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                options={"require": ["exp", "iat", "iss", "aud"]},
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except PyJWTError as e:
            logger.debug(f"Token verification failed: {e}")
            raise InvalidCredentialError() from e

        user_id = payload.get("userId")
        kind = payload.get("type")
        if not isinstance(user_id, int) or isinstance(user_id, bool) or kind is None:
            raise InvalidCredentialError("Token is missing required claims")

        return TokenClaims(
            subject_id=user_id,
            email=payload.get("email", ""),
            kind=kind,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
            issuer=payload["iss"],
            audience=payload["aud"],
            username=payload.get("username"),
            raw=payload,
        )

    def decode_unverified_expiry(self, token: str) -> datetime | None:
        """Read the ``exp`` claim without verifying anything.

        Returns None when the token cannot be decoded or has no usable expiry.
        """
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except PyJWTError:
            return None
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)) or isinstance(exp, bool):
            return None
        try:
            return datetime.fromtimestamp(exp, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None


def extract_from_header(header_value: str | None) -> str | None:
    """Extract a token from an ``Authorization: Bearer <token>`` header.

    Returns None (not an error) when the header is absent or uses another
    scheme, so callers can tell "no credential" from "bad credential".
    """
    if not header_value or not header_value.startswith(BEARER_PREFIX):
        return None
    token = header_value[len(BEARER_PREFIX) :].strip()
    return token or None
