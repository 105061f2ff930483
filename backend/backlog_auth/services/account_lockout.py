"""Account lockout after repeated failed logins."""

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from backlog_auth.models.user import User
from backlog_auth.services.audit import SecurityAuditLogger, SecurityEvent, Severity
from backlog_auth.services.errors import UserNotFoundError
from backlog_auth.services.stores import UserStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_FAILED_ATTEMPTS = 5
DEFAULT_LOCKOUT_DURATION = timedelta(minutes=30)


@dataclass(frozen=True)
class LockoutConfig:
    max_failed_attempts: int
    lockout_duration_minutes: int


@dataclass(frozen=True)
class LockoutStatus:
    is_locked: bool
    attempts_remaining: int
    lock_minutes_remaining: int
    failed_attempts: int = 0
    locked_until: datetime | None = None


def _aware(value: datetime | None) -> datetime | None:
    # Some drivers hand back naive datetimes; stored values are UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _minutes_until(moment: datetime, now: datetime) -> int:
    return max(0, math.ceil((moment - now).total_seconds() / 60))


class LockoutGuard:
    """Per-account failed-attempt counter with a lock window.

    The lock is lazy: an elapsed ``locked_until`` is treated as unlocked and
    reset the next time the account is looked at.
    """

    def __init__(
        self,
        users: UserStore,
        audit: SecurityAuditLogger,
        *,
        max_failed_attempts: int = DEFAULT_MAX_FAILED_ATTEMPTS,
        lockout_duration: timedelta = DEFAULT_LOCKOUT_DURATION,
        fail_open: bool = False,
    ):
        self.users = users
        self.audit = audit
        self.max_failed_attempts = max_failed_attempts
        self.lockout_duration = lockout_duration
        self.fail_open = fail_open

    def config(self) -> LockoutConfig:
        return LockoutConfig(
            max_failed_attempts=self.max_failed_attempts,
            lockout_duration_minutes=int(self.lockout_duration.total_seconds() // 60),
        )

    def _unlocked_status(self, failed_attempts: int = 0) -> LockoutStatus:
        return LockoutStatus(
            is_locked=False,
            attempts_remaining=max(0, self.max_failed_attempts - failed_attempts),
            lock_minutes_remaining=0,
            failed_attempts=failed_attempts,
        )

    async def record_failed_attempt(self, email: str) -> LockoutStatus | None:
        """Count a failed login for the account with this email.

        Returns None for unknown emails; callers must answer exactly as they
        would for a wrong password. Attempts made while the account is locked
        neither increment the counter nor extend the lock.
        """
        try:
            user = await self.users.find_by_email(email)
            if user is None:
                return None

            now = datetime.now(UTC)
            locked_until = _aware(user.locked_until)
            if locked_until is not None and locked_until > now:
                return LockoutStatus(
                    is_locked=True,
                    attempts_remaining=0,
                    lock_minutes_remaining=_minutes_until(locked_until, now),
                    failed_attempts=user.failed_login_attempts,
                    locked_until=locked_until,
                )

            # An elapsed lock starts a fresh count
            previous = 0 if locked_until is not None else user.failed_login_attempts
            failed_attempts = previous + 1
            should_lock = failed_attempts >= self.max_failed_attempts
            new_locked_until = now + self.lockout_duration if should_lock else None

            await self.users.update_fields(
                user.id,
                failed_login_attempts=failed_attempts,
                locked_until=new_locked_until,
            )
        except Exception as e:
            if not self.fail_open:
                raise
            logger.error(f"Error recording failed attempt, failing open: {e}")
            return None

        if should_lock:
            self.audit.log_account_locked(failed_attempts, email=email)
            return LockoutStatus(
                is_locked=True,
                attempts_remaining=0,
                lock_minutes_remaining=self.config().lockout_duration_minutes,
                failed_attempts=failed_attempts,
                locked_until=new_locked_until,
            )
        return self._unlocked_status(failed_attempts)

    async def reset_on_success(self, user_id: int) -> None:
        """Clear the counters after a successful login."""
        await self.users.update_fields(user_id, failed_login_attempts=0, locked_until=None)

    async def check_status(self, email: str) -> LockoutStatus:
        """Report lock status for an email.

        Not side-effect free: an elapsed lock is reset in the store before
        reporting the account as unlocked.
        """
        try:
            user = await self.users.find_by_email(email)
            if user is None:
                return self._unlocked_status()

            now = datetime.now(UTC)
            locked_until = _aware(user.locked_until)
            if locked_until is not None and locked_until <= now:
                await self.reset_on_success(user.id)
                self.audit.log_event(
                    SecurityEvent.ACCOUNT_UNLOCKED,
                    Severity.LOW,
                    "Account lock expired",
                    {"email": email},
                )
                return self._unlocked_status()
        except Exception as e:
            if not self.fail_open:
                raise
            logger.error(f"Error checking account lock status, failing open: {e}")
            return self._unlocked_status()

        if locked_until is not None:
            return LockoutStatus(
                is_locked=True,
                attempts_remaining=0,
                lock_minutes_remaining=_minutes_until(locked_until, now),
                failed_attempts=user.failed_login_attempts,
                locked_until=locked_until,
            )
        return self._unlocked_status(user.failed_login_attempts)

    async def admin_unlock(self, identifier: int | str) -> User:
        """Force-unlock an account by id (int) or email (str).

        Authorization of the caller is the API layer's job.
        """
        if isinstance(identifier, int):
            user = await self.users.find_by_id(identifier)
        else:
            user = await self.users.find_by_email(identifier)
        if user is None:
            raise UserNotFoundError("User not found")

        updated = await self.users.update_fields(
            user.id, failed_login_attempts=0, locked_until=None
        )
        self.audit.log_event(
            SecurityEvent.ADMIN_ACCOUNT_UNLOCK,
            Severity.MEDIUM,
            "Admin unlocked user account",
            {"user_identifier": identifier},
        )
        return updated or user
