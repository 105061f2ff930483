"""Pydantic schemas for authentication API.

JSON field names are camelCase to match the web client.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_serializer
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serializing to camelCase and accepting either case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserResponse(CamelModel):
    """Public profile fields of a user. Never includes credentials."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    email: str
    username: str
    first_name: str | None = None
    last_name: str | None = None
    profile_picture: str | None = None
    provider: str
    last_login: datetime | None = None
    created_at: datetime | None = None


class LoginRequest(CamelModel):
    """Request for email/password login."""

    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class RefreshRequest(CamelModel):
    """Body fallback for non-browser clients that cannot hold the cookie."""

    refresh_token: str | None = None


class SessionResponse(CamelModel):
    """Response after login or refresh.

    ``refreshToken`` only appears when the client sent its refresh token in
    the body; browser clients get it as a cookie.
    """

    success: bool = True
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = Field(description="Access token expiry in seconds")
    user: UserResponse
    refresh_token: str | None = None

    @model_serializer(mode="wrap")
    def _omit_cookie_transported_token(self, handler: Any) -> dict[str, Any]:
        data = handler(self)
        if self.refresh_token is None:
            data.pop("refreshToken", None)
            data.pop("refresh_token", None)
        return data


class CurrentUserResponse(CamelModel):
    success: bool = True
    user: UserResponse


class AuthStatusResponse(CamelModel):
    """Response for auth status check. Never fails."""

    authenticated: bool
    user: UserResponse | None = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str
