"""Authentication gate: the chokepoint every protected route passes through."""

import logging

from backlog_auth.models.user import User
from backlog_auth.services.errors import (
    AuthenticationRequiredError,
    AuthError,
    InvalidTokenTypeError,
    TokenRevokedError,
    UserNotFoundError,
)
from backlog_auth.services.stores import UserStore
from backlog_auth.services.token_blacklist import RevocationLedger
from backlog_auth.services.tokens import TokenCodec, extract_from_header

logger = logging.getLogger(__name__)


class AuthenticationGate:
    """Resolves the caller from a bearer token or the browser session.

    Decision order for a bearer token: revocation, then signature and
    expiry, then kind, then user lookup. Without a bearer token the browser
    session identity is used when it names an existing user.
    """

    def __init__(self, users: UserStore, codec: TokenCodec, ledger: RevocationLedger):
        self.users = users
        self.codec = codec
        self.ledger = ledger

    async def authenticate(
        self, authorization_header: str | None, session_user_id: int | None = None
    ) -> User:
        token = extract_from_header(authorization_header)
        if token is None:
            if session_user_id is not None:
                user = await self.users.find_by_id(session_user_id)
                if user is not None:
                    return user
            raise AuthenticationRequiredError()

        if await self.ledger.is_revoked(token):
            raise TokenRevokedError()

        claims = self.codec.validate(token)
        if claims.kind != "access":
            raise InvalidTokenTypeError()

        user = await self.users.find_by_id(claims.subject_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def authenticate_optional(
        self, authorization_header: str | None, session_user_id: int | None = None
    ) -> User | None:
        """Same checks as authenticate(), but any rejection means anonymous."""
        try:
            return await self.authenticate(authorization_header, session_user_id)
        except AuthError as e:
            logger.debug(f"Optional authentication yielded no identity: {e.code}")
            return None
