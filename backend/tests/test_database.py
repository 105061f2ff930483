"""Tests for the request-scoped database session."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from backlog_auth.core import database


def _session_maker(session):
    maker = MagicMock()
    maker.return_value.__aenter__ = AsyncMock(return_value=session)
    maker.return_value.__aexit__ = AsyncMock(return_value=False)
    return maker


class TestGetDb:
    @pytest.mark.asyncio
    async def test_commits_after_request(self):
        session = AsyncMock()
        with patch.object(database, "async_session_maker", _session_maker(session)):
            gen = database.get_db()
            assert await gen.__anext__() is session
            with pytest.raises(StopAsyncIteration):
                await gen.__anext__()

        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self):
        session = AsyncMock()
        with patch.object(database, "async_session_maker", _session_maker(session)):
            gen = database.get_db()
            await gen.__anext__()
            with pytest.raises(RuntimeError):
                await gen.athrow(RuntimeError("handler failed"))

        session.commit.assert_not_awaited()
        session.rollback.assert_awaited_once()


class TestCheckDbConnection:
    @pytest.mark.asyncio
    async def test_reachable(self):
        session = AsyncMock()
        with patch.object(database, "async_session_maker", _session_maker(session)):
            assert await database.check_db_connection() is True

    @pytest.mark.asyncio
    async def test_unreachable(self):
        session = AsyncMock()
        session.execute.side_effect = ConnectionRefusedError("refused")
        with patch.object(database, "async_session_maker", _session_maker(session)):
            assert await database.check_db_connection() is False
