"""Revocation ledger: credentials that must not be honored before expiry.

Database-backed so revocations survive restarts and are shared by every
server instance. Lookups are by exact token string.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from backlog_auth.services.audit import SecurityAuditLogger
from backlog_auth.services.errors import RevocationStoreUnavailable
from backlog_auth.services.stores import RevocationStore, UserStore
from backlog_auth.services.tokens import TokenCodec

logger = logging.getLogger(__name__)

DEFAULT_REVOKE_ALL_REASON = "User logout or security incident"


@dataclass(frozen=True)
class RevocationStats:
    blacklisted: int
    expired: int

    @property
    def needs_cleanup(self) -> bool:
        return self.expired > 0


class RevocationLedger:
    """Records and answers "has this exact token been revoked?"."""

    def __init__(
        self,
        store: RevocationStore,
        users: UserStore,
        codec: TokenCodec,
        audit: SecurityAuditLogger,
        *,
        fail_open: bool = True,
    ):
        self.store = store
        self.users = users
        self.codec = codec
        self.audit = audit
        self.fail_open = fail_open

    async def record(
        self,
        token: str,
        owner_user_id: int | None = None,
        kind: str = "access",
        reason: str | None = None,
    ) -> None:
        """Blacklist a token until its embedded expiry.

        Tokens that cannot be decoded are still blacklisted, expiring after
        one access-token lifetime so the row eventually ages out.
        """
        expires_at = self.codec.decode_unverified_expiry(token)
        if expires_at is None:
            expires_at = datetime.now(UTC) + self.codec.access_ttl

        if await self.store.find_by_token(token) is not None:
            logger.debug("Token already blacklisted")
            return

        await self.store.insert(
            token=token,
            user_id=owner_user_id,
            kind=kind,
            expires_at=expires_at,
            reason=reason,
        )
        self.audit.log_token_revoked(kind, reason, user_id=owner_user_id)

    async def is_revoked(self, token: str) -> bool:
        """Exact-string lookup.

        On store errors this fails open (returns False) unless fail_open is
        disabled, in which case RevocationStoreUnavailable is raised.
        """
        try:
            return await self.store.find_by_token(token) is not None
        except Exception as e:
            if self.fail_open:
                logger.error(f"Error checking token blacklist, failing open: {e}")
                return False
            logger.error(f"Error checking token blacklist, failing closed: {e}")
            raise RevocationStoreUnavailable() from e

    async def revoke_all_for_user(
        self, user_id: int, reason: str = DEFAULT_REVOKE_ALL_REASON
    ) -> None:
        """Blacklist the user's live refresh token and clear it from the record.

        Access tokens are not tracked per user; any still in circulation keep
        working until their own short expiry.
        """
        user = await self.users.find_by_id(user_id)
        if user is not None and user.refresh_token:
            await self.record(user.refresh_token, user_id, "refresh", reason)

        await self.users.update_fields(user_id, refresh_token=None)
        logger.info(f"All tokens revoked for user [REDACTED], reason: {reason}")

    async def cleanup(self) -> int:
        """Delete entries whose expiry has passed. Returns count removed."""
        removed = await self.store.delete_expired_before(datetime.now(UTC))
        logger.info(f"Cleaned up {removed} expired blacklisted tokens")
        return removed

    async def stats(self) -> RevocationStats:
        now = datetime.now(UTC)
        return RevocationStats(
            blacklisted=await self.store.count(),
            expired=await self.store.count_expired_before(now),
        )
