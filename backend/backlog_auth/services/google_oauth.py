"""Google OAuth 2.0 client (authorization code flow).

Only the pieces the login flow needs: build the consent URL, exchange the
callback code for tokens, and fetch the verified profile. Google's own tokens
are discarded after the profile fetch; this service issues its own.
"""

import logging
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from backlog_auth.core.config import Settings
from backlog_auth.services.errors import IdentityProviderError

logger = logging.getLogger(__name__)

GOOGLE_AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_ENDPOINT = "https://openidconnect.googleapis.com/v1/userinfo"

GOOGLE_SCOPES = ("openid", "profile", "email")

# Timeout for Google HTTP requests
OAUTH_TIMEOUT = 15.0


@dataclass(frozen=True)
class GoogleProfile:
    """Verified identity returned by Google."""

    provider_id: str
    email: str
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None


class GoogleOAuthClient:
    """Talks to Google's OAuth and userinfo endpoints."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleOAuthClient":
        return cls(
            settings.google_client_id,
            settings.google_client_secret,
            settings.google_redirect_uri,
        )

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=OAUTH_TIMEOUT, transport=self._transport)

    def authorization_url(self, state: str) -> str:
        """Build the Google consent URL; always show the account chooser."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(GOOGLE_SCOPES),
            "state": state,
            "prompt": "select_account",
            "access_type": "online",
        }
        return f"{GOOGLE_AUTHORIZATION_ENDPOINT}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> GoogleProfile:
        """Exchange an authorization code for the user's verified profile.

        Raises:
            IdentityProviderError: on any transport, HTTP or payload problem.
        """
        if not self.configured:
            raise IdentityProviderError("Google OAuth is not configured")

        async with self._http_client() as client:
            try:
                token_response = await client.post(
                    GOOGLE_TOKEN_ENDPOINT,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                    headers={"Accept": "application/json"},
                )
                token_response.raise_for_status()
                access_token = token_response.json()["access_token"]
            except (httpx.HTTPError, ValueError, KeyError) as e:
                raise IdentityProviderError(f"Google token exchange failed: {e}") from e

            try:
                profile_response = await client.get(
                    GOOGLE_USERINFO_ENDPOINT,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                profile_response.raise_for_status()
                data = profile_response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise IdentityProviderError(f"Google profile fetch failed: {e}") from e

        return self._parse_profile(data)

    @staticmethod
    def _parse_profile(data: dict) -> GoogleProfile:
        provider_id = data.get("sub") or data.get("id")
        email = data.get("email")
        if not provider_id or not email:
            raise IdentityProviderError("Google profile is missing id or email")
        if data.get("email_verified") is False:
            raise IdentityProviderError("Google account email is not verified")
        return GoogleProfile(
            provider_id=str(provider_id),
            email=email,
            name=data.get("name"),
            given_name=data.get("given_name"),
            family_name=data.get("family_name"),
            picture=data.get("picture"),
        )
