"""Tests for security headers middleware."""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


class TestSecurityHeaders:
    async def test_standard_headers(self, async_client: AsyncClient):
        response = await async_client.get("/")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-XSS-Protection"] == "0"
        assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        assert "frame-ancestors 'none'" in response.headers["Content-Security-Policy"]

    async def test_auth_responses_not_cached(self, async_client: AsyncClient):
        response = await async_client.post("/auth/logout")
        assert response.headers["Cache-Control"] == "no-store, no-cache, must-revalidate, private"
        assert response.headers["Pragma"] == "no-cache"
        assert response.headers["Expires"] == "0"

    async def test_auth_errors_not_cached(self, async_client: AsyncClient):
        response = await async_client.get("/auth/user")
        assert response.status_code == 401
        assert response.headers["Cache-Control"].startswith("no-store")

    async def test_other_paths_keep_default_caching(self, async_client: AsyncClient):
        response = await async_client.get("/")
        assert "Pragma" not in response.headers

    async def test_hsts_with_https(self, async_client: AsyncClient):
        response = await async_client.get("/", headers={"X-Forwarded-Proto": "https"})
        assert "max-age=31536000" in response.headers["Strict-Transport-Security"]

    async def test_no_hsts_for_http(self, async_client: AsyncClient):
        response = await async_client.get("/")
        assert "Strict-Transport-Security" not in response.headers
