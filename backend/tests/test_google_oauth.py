"""Tests for the Google OAuth client using a mocked transport."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from backlog_auth.services.errors import IdentityProviderError
from backlog_auth.services.google_oauth import (
    GOOGLE_TOKEN_ENDPOINT,
    GOOGLE_USERINFO_ENDPOINT,
    GoogleOAuthClient,
)

REDIRECT_URI = "http://localhost:3000/auth/google/callback"


def make_client(handler) -> GoogleOAuthClient:
    return GoogleOAuthClient(
        "client-id", "client-secret", REDIRECT_URI, transport=httpx.MockTransport(handler)
    )


def google(token_response: httpx.Response, profile_response: httpx.Response):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if str(request.url) == GOOGLE_TOKEN_ENDPOINT:
            return token_response
        if str(request.url) == GOOGLE_USERINFO_ENDPOINT:
            return profile_response
        return httpx.Response(404)

    return handler, seen


class TestAuthorizationUrl:
    def test_contains_required_params(self):
        client = GoogleOAuthClient("client-id", "client-secret", REDIRECT_URI)
        url = urlparse(client.authorization_url("state-123"))
        params = parse_qs(url.query)

        assert url.netloc == "accounts.google.com"
        assert params["client_id"] == ["client-id"]
        assert params["redirect_uri"] == [REDIRECT_URI]
        assert params["response_type"] == ["code"]
        assert params["state"] == ["state-123"]
        assert params["scope"] == ["openid profile email"]

    def test_configured(self):
        assert GoogleOAuthClient("id", "secret", REDIRECT_URI).configured is True
        assert GoogleOAuthClient("id", "", REDIRECT_URI).configured is False


class TestExchangeCode:
    @pytest.mark.asyncio
    async def test_success(self):
        handler, seen = google(
            httpx.Response(200, json={"access_token": "at"}),
            httpx.Response(
                200,
                json={
                    "sub": "123",
                    "email": "gamer@gmail.com",
                    "email_verified": True,
                    "given_name": "Gina",
                    "family_name": "Gamer",
                    "picture": "https://example.com/p.png",
                },
            ),
        )

        profile = await make_client(handler).exchange_code("the-code")

        assert profile.provider_id == "123"
        assert profile.email == "gamer@gmail.com"
        assert profile.given_name == "Gina"
        token_form = parse_qs(seen[0].content.decode())
        assert token_form["code"] == ["the-code"]
        assert token_form["grant_type"] == ["authorization_code"]
        assert seen[1].headers["Authorization"] == "Bearer at"

    @pytest.mark.asyncio
    async def test_token_endpoint_error(self):
        handler, _ = google(httpx.Response(400, json={"error": "invalid_grant"}), httpx.Response(200))
        with pytest.raises(IdentityProviderError):
            await make_client(handler).exchange_code("bad")

    @pytest.mark.asyncio
    async def test_token_response_without_access_token(self):
        handler, _ = google(httpx.Response(200, json={}), httpx.Response(200))
        with pytest.raises(IdentityProviderError):
            await make_client(handler).exchange_code("code")

    @pytest.mark.asyncio
    async def test_userinfo_error(self):
        handler, _ = google(httpx.Response(200, json={"access_token": "at"}), httpx.Response(503))
        with pytest.raises(IdentityProviderError):
            await make_client(handler).exchange_code("code")

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable")

        with pytest.raises(IdentityProviderError):
            await make_client(handler).exchange_code("code")

    @pytest.mark.asyncio
    async def test_unverified_email_rejected(self):
        handler, _ = google(
            httpx.Response(200, json={"access_token": "at"}),
            httpx.Response(200, json={"sub": "1", "email": "x@gmail.com", "email_verified": False}),
        )
        with pytest.raises(IdentityProviderError):
            await make_client(handler).exchange_code("code")

    @pytest.mark.asyncio
    async def test_missing_email_rejected(self):
        handler, _ = google(
            httpx.Response(200, json={"access_token": "at"}),
            httpx.Response(200, json={"sub": "1"}),
        )
        with pytest.raises(IdentityProviderError):
            await make_client(handler).exchange_code("code")

    @pytest.mark.asyncio
    async def test_not_configured(self):
        with pytest.raises(IdentityProviderError):
            await GoogleOAuthClient("", "", REDIRECT_URI).exchange_code("code")
