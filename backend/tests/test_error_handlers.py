"""Tests for the uniform error body."""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


class TestErrorHandlers:
    async def test_unknown_route(self, async_client: AsyncClient):
        response = await async_client.get("/no-such-route")
        assert response.status_code == 404
        assert response.json() == {"error": "NOT_FOUND", "message": "Not Found", "status": 404}

    async def test_method_not_allowed(self, async_client: AsyncClient):
        response = await async_client.get("/auth/login")
        assert response.status_code == 405
        assert response.json()["error"] == "METHOD_NOT_ALLOWED"

    async def test_validation_error(self, async_client: AsyncClient):
        response = await async_client.post("/auth/login", json={"email": "a@example.com"})
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "VALIDATION_ERROR"
        assert "password" in body["message"]

    async def test_unexpected_error_hides_details(self, app, async_client: AsyncClient):
        @app.get("/boom")
        async def boom():
            raise RuntimeError("secret internals")

        response = await async_client.get("/boom")

        assert response.status_code == 500
        assert response.json() == {
            "error": "INTERNAL_ERROR",
            "message": "Internal server error",
            "status": 500,
        }

    async def test_store_failure_during_authentication(
        self, app, async_client: AsyncClient, codec, user
    ):
        from backlog_auth.api.deps import get_user_store

        class BrokenUserStore:
            async def find_by_id(self, user_id):
                raise ConnectionError("db down")

        app.dependency_overrides[get_user_store] = lambda: BrokenUserStore()
        response = await async_client.get(
            "/auth/user", headers={"Authorization": f"Bearer {codec.issue_access(user)}"}
        )

        assert response.status_code == 500
        assert response.json()["error"] == "AUTHENTICATION_ERROR"
