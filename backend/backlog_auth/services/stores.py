"""Persistence boundaries used by the credential components.

Components receive a store in their constructor instead of reaching for a
global database client, so each one can be exercised against a substitute.
"""

import logging
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backlog_auth.models.token_blacklist import TokenBlacklist
from backlog_auth.models.user import User

logger = logging.getLogger(__name__)


class UserStore(Protocol):
    """User-record operations needed by the auth subsystem."""

    async def find_by_id(self, user_id: int) -> User | None: ...

    async def find_by_email(self, email: str) -> User | None: ...

    async def find_by_username(self, username: str) -> User | None: ...

    async def find_by_google_id(self, google_id: str) -> User | None: ...

    async def create(self, **fields: Any) -> User: ...

    async def update_fields(self, user_id: int, **fields: Any) -> User | None: ...

    async def count_users(self) -> int: ...

    async def count_active_since(self, since: datetime) -> int: ...

    async def count_locked(self, now: datetime) -> int: ...

    async def clear_elapsed_locks(self, now: datetime) -> int: ...

    async def clear_stale_refresh_tokens(self, last_login_before: datetime) -> int: ...


class RevocationStore(Protocol):
    """Durable deny-list of credential strings."""

    async def insert(
        self,
        token: str,
        user_id: int | None,
        kind: str,
        expires_at: datetime,
        reason: str | None,
    ) -> TokenBlacklist: ...

    async def find_by_token(self, token: str) -> TokenBlacklist | None: ...

    async def delete_expired_before(self, now: datetime) -> int: ...

    async def count(self) -> int: ...

    async def count_expired_before(self, now: datetime) -> int: ...


class SqlUserStore:
    """UserStore backed by an async SQLAlchemy session.

    Writes commit immediately. Workflows are sequences of independent steps,
    and a failed attempt must stay counted even when the request then fails.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _one(self, *criteria: Any) -> User | None:
        result = await self.session.execute(select(User).where(*criteria))
        return result.scalar_one_or_none()

    async def find_by_id(self, user_id: int) -> User | None:
        return await self._one(User.id == user_id)

    async def find_by_email(self, email: str) -> User | None:
        return await self._one(User.email == email)

    async def find_by_username(self, username: str) -> User | None:
        return await self._one(User.username == username)

    async def find_by_google_id(self, google_id: str) -> User | None:
        return await self._one(User.google_id == google_id)

    async def create(self, **fields: Any) -> User:
        user = User(**fields)
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def update_fields(self, user_id: int, **fields: Any) -> User | None:
        user = await self.find_by_id(user_id)
        if user is None:
            return None
        for name, value in fields.items():
            setattr(user, name, value)
        await self.session.commit()
        return user

    async def count_users(self) -> int:
        result = await self.session.execute(select(func.count(User.id)))
        return result.scalar() or 0

    async def count_active_since(self, since: datetime) -> int:
        result = await self.session.execute(
            select(func.count(User.id)).where(User.last_login >= since)
        )
        return result.scalar() or 0

    async def count_locked(self, now: datetime) -> int:
        result = await self.session.execute(
            select(func.count(User.id)).where(
                User.locked_until.is_not(None), User.locked_until > now
            )
        )
        return result.scalar() or 0

    async def clear_elapsed_locks(self, now: datetime) -> int:
        result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
            update(User)
            .where(User.locked_until.is_not(None), User.locked_until <= now)
            .values(failed_login_attempts=0, locked_until=None)
        )
        await self.session.commit()
        return result.rowcount

    async def clear_stale_refresh_tokens(self, last_login_before: datetime) -> int:
        result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
            update(User)
            .where(
                User.refresh_token.is_not(None),
                or_(User.last_login < last_login_before, User.last_login.is_(None)),
            )
            .values(refresh_token=None)
        )
        await self.session.commit()
        return result.rowcount


class SqlRevocationStore:
    """RevocationStore backed by the ``token_blacklist`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(
        self,
        token: str,
        user_id: int | None,
        kind: str,
        expires_at: datetime,
        reason: str | None,
    ) -> TokenBlacklist:
        entry = TokenBlacklist(
            token=token,
            user_id=user_id,
            type=kind,
            expires_at=expires_at,
            reason=reason,
        )
        try:
            # Savepoint so a duplicate does not poison the request transaction
            async with self.session.begin_nested():
                self.session.add(entry)
        except IntegrityError:
            existing = await self.find_by_token(token)
            if existing is None:
                raise
            logger.debug("Token already blacklisted; keeping existing entry")
            return existing
        await self.session.commit()
        return entry

    async def find_by_token(self, token: str) -> TokenBlacklist | None:
        result = await self.session.execute(
            select(TokenBlacklist).where(TokenBlacklist.token == token)
        )
        return result.scalar_one_or_none()

    async def delete_expired_before(self, now: datetime) -> int:
        result: CursorResult[Any] = await self.session.execute(  # type: ignore[assignment]
            delete(TokenBlacklist).where(TokenBlacklist.expires_at < now)
        )
        await self.session.commit()
        return result.rowcount

    async def count(self) -> int:
        result = await self.session.execute(select(func.count(TokenBlacklist.id)))
        return result.scalar() or 0

    async def count_expired_before(self, now: datetime) -> int:
        result = await self.session.execute(
            select(func.count(TokenBlacklist.id)).where(TokenBlacklist.expires_at < now)
        )
        return result.scalar() or 0
