"""Session maintenance service - periodic cleanup of credential state.

Independent loops:
- expired revocation entries are deleted (hourly)
- elapsed account locks are cleared (every 5 minutes)
- refresh tokens of users idle for 30 days are dropped (daily)
- idle clients are evicted from the login rate limiter (every 5 minutes)

Lock expiry is also handled lazily at login, so the sweep is housekeeping
only.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from backlog_auth.core import async_session_maker
from backlog_auth.core.config import Settings, settings
from backlog_auth.core.logging import get_logger
from backlog_auth.middleware.rate_limit import LoginRateLimiter
from backlog_auth.services.audit import get_audit_logger
from backlog_auth.services.stores import (
    RevocationStore,
    SqlRevocationStore,
    SqlUserStore,
    UserStore,
)
from backlog_auth.services.token_blacklist import RevocationLedger
from backlog_auth.services.tokens import TokenCodec

logger = get_logger("maintenance")

# Wait a bit before the first run to let the app start up
STARTUP_DELAY_SECONDS = 60

StoresFactory = Callable[[], AbstractAsyncContextManager[tuple[UserStore, RevocationStore]]]


@asynccontextmanager
async def sql_stores() -> AsyncIterator[tuple[UserStore, RevocationStore]]:
    """Open a database session, commit on success, roll back on error."""
    async with async_session_maker() as db:
        try:
            yield SqlUserStore(db), SqlRevocationStore(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise


@dataclass(frozen=True)
class MaintenanceReport:
    blacklisted_tokens_removed: int
    locks_cleared: int
    stale_refresh_tokens_cleared: int


class SessionMaintenanceService:
    """Background jobs keeping the revocation ledger and user rows tidy."""

    def __init__(
        self,
        stores_factory: StoresFactory = sql_stores,
        config: Settings | None = None,
        *,
        startup_delay: float = STARTUP_DELAY_SECONDS,
        rate_limiter: LoginRateLimiter | None = None,
    ):
        self._stores = stores_factory
        self._settings = config or settings
        self._startup_delay = startup_delay
        self._rate_limiter = rate_limiter
        self._codec = TokenCodec.from_settings(self._settings)
        self._running = False
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background loops."""
        if self._running:
            logger.warning("Session maintenance service is already running")
            return

        self._running = True
        jobs = [
            ("blacklist cleanup", self.cleanup_blacklist, self._settings.blacklist_cleanup_interval),
            ("lock sweep", self.sweep_elapsed_locks, self._settings.lock_sweep_interval),
            (
                "stale refresh token cleanup",
                self.cleanup_stale_refresh_tokens,
                self._settings.stale_token_cleanup_interval,
            ),
        ]
        if self._rate_limiter is not None:
            jobs.append(
                (
                    "rate limit cleanup",
                    self.cleanup_rate_limiter,
                    self._settings.rate_limit_cleanup_interval,
                )
            )
        self._tasks = [
            asyncio.create_task(self._loop(name, job, interval)) for name, job, interval in jobs
        ]
        logger.info(
            "Session maintenance service started "
            f"(blacklist: {self._settings.blacklist_cleanup_interval}s, "
            f"locks: {self._settings.lock_sweep_interval}s, "
            f"stale tokens: {self._settings.stale_token_cleanup_interval}s, "
            f"rate limit: {self._settings.rate_limit_cleanup_interval}s)"
        )

    async def stop(self) -> None:
        """Cancel the background loops and wait for them to finish."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("Session maintenance service stopped")

    async def _loop(self, name: str, job: Callable[[], Awaitable[int]], interval: int):
        await asyncio.sleep(self._startup_delay)

        while self._running:
            try:
                await job()
            except Exception as e:
                logger.error(f"Error in {name}: {e}")

            await asyncio.sleep(interval)

    async def cleanup_blacklist(self) -> int:
        """Delete revocation entries whose token has expired."""
        async with self._stores() as (users, revocations):
            ledger = RevocationLedger(revocations, users, self._codec, get_audit_logger())
            return await ledger.cleanup()

    async def sweep_elapsed_locks(self) -> int:
        """Reset counters on accounts whose lock has elapsed."""
        async with self._stores() as (users, _):
            cleared = await users.clear_elapsed_locks(datetime.now(UTC))
        if cleared > 0:
            logger.info(f"Cleared {cleared} elapsed account locks")
        return cleared

    async def cleanup_stale_refresh_tokens(self) -> int:
        """Drop refresh tokens of users who have not logged in recently."""
        cutoff = datetime.now(UTC) - timedelta(days=self._settings.stale_refresh_token_days)
        async with self._stores() as (users, _):
            cleared = await users.clear_stale_refresh_tokens(cutoff)
        if cleared > 0:
            logger.info(
                f"Cleared {cleared} refresh tokens unused for "
                f"{self._settings.stale_refresh_token_days} days"
            )
        return cleared

    async def cleanup_rate_limiter(self) -> int:
        """Evict clients whose login attempts have all left the window."""
        if self._rate_limiter is None:
            return 0
        return self._rate_limiter.cleanup_inactive()

    async def run_once(self) -> MaintenanceReport:
        """Run every job once, in order. Errors propagate."""
        return MaintenanceReport(
            blacklisted_tokens_removed=await self.cleanup_blacklist(),
            locks_cleared=await self.sweep_elapsed_locks(),
            stale_refresh_tokens_cleared=await self.cleanup_stale_refresh_tokens(),
        )
