"""Authentication API endpoints.

Browser clients receive the refresh token only as an httpOnly cookie scoped
to /auth/refresh; the access token travels in JSON and the Authorization
header.
"""

import logging
import secrets
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from backlog_auth.api.deps import (
    enforce_login_rate_limit,
    get_cookie_policy,
    get_current_user,
    get_google_client,
    get_optional_user,
    get_session_manager,
)
from backlog_auth.api.errors import auth_error_response
from backlog_auth.core.config import Settings, get_settings
from backlog_auth.core.request_utils import get_session_user_id
from backlog_auth.models.user import User
from backlog_auth.schemas.auth import (
    AuthStatusResponse,
    CurrentUserResponse,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    SessionResponse,
    UserResponse,
)
from backlog_auth.services.errors import (
    IdentityProviderError,
    InvalidRefreshTokenError,
    TokenRevokedError,
)
from backlog_auth.services.google_oauth import GoogleOAuthClient
from backlog_auth.services.session import RefreshCookiePolicy, SessionManager, SessionResult
from backlog_auth.services.tokens import extract_from_header

logger = logging.getLogger(__name__)

OAUTH_STATE_KEY = "oauth_state"
SESSION_USER_KEY = "user_id"

router = APIRouter(prefix="/auth", tags=["auth"])


def _session_response(result: SessionResult, echo_refresh_token: bool = False) -> SessionResponse:
    return SessionResponse(
        access_token=result.access_token,
        expires_in=result.tokens.expires_in,
        user=UserResponse.model_validate(result.user),
        refresh_token=result.refresh_token if echo_refresh_token else None,
    )


def _frontend_redirect(config: Settings, path: str, **params: str) -> RedirectResponse:
    return RedirectResponse(f"{config.frontend_url}{path}?{urlencode(params)}", status_code=302)


@router.get("/google")
async def google_login(
    request: Request,
    google: GoogleOAuthClient = Depends(get_google_client),
    config: Settings = Depends(get_settings),
) -> RedirectResponse:
    """Start the Google OAuth flow.

    A random state is kept in the browser session and checked on callback.
    """
    if not google.configured:
        logger.warning("Google login requested but OAuth is not configured")
        return _frontend_redirect(config, "/login", error="oauth_failed")

    state = secrets.token_urlsafe(32)
    request.session[OAUTH_STATE_KEY] = state
    return RedirectResponse(google.authorization_url(state), status_code=302)


@router.get("/google/callback")
async def google_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    google: GoogleOAuthClient = Depends(get_google_client),
    manager: SessionManager = Depends(get_session_manager),
    cookies: RefreshCookiePolicy = Depends(get_cookie_policy),
    config: Settings = Depends(get_settings),
) -> RedirectResponse:
    """Finish the Google OAuth flow and hand the access token to the frontend."""
    expected_state = request.session.pop(OAUTH_STATE_KEY, None)
    if error or not code or not state or not expected_state:
        logger.info(f"OAuth callback rejected (provider error: {error})")
        return _frontend_redirect(config, "/login", error="oauth_failed")
    if not secrets.compare_digest(state, expected_state):
        manager.audit.log_auth_failure("oauth_state_mismatch", request)
        return _frontend_redirect(config, "/login", error="oauth_failed")

    try:
        profile = await google.exchange_code(code)
    except IdentityProviderError as e:
        logger.warning(f"Google OAuth exchange failed: {e}")
        manager.audit.log_auth_failure("oauth_provider_error", request)
        return _frontend_redirect(config, "/login", error="oauth_failed")

    try:
        user = await manager.link_or_create_user(profile)
        result = await manager.login(user, request)
    except Exception as e:
        logger.exception(f"OAuth callback error: {e}")
        return _frontend_redirect(config, "/login", error="server_error")

    request.session[SESSION_USER_KEY] = result.user.id
    response = _frontend_redirect(
        config, "/auth/callback", success="true", token=result.access_token
    )
    cookies.set_refresh_cookie(response, result.refresh_token)
    return response


@router.post(
    "/login",
    response_model=SessionResponse,
    dependencies=[Depends(enforce_login_rate_limit)],
)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
    cookies: RefreshCookiePolicy = Depends(get_cookie_policy),
) -> SessionResponse:
    """Log in with email and password.

    Unknown email, wrong password and locked account all answer 401
    INVALID_CREDENTIALS. Rate limited per IP.
    """
    user = await manager.authenticate_password(body.email, body.password, request)
    result = await manager.login(user, request)
    cookies.set_refresh_cookie(response, result.refresh_token)
    return _session_response(result)


@router.post(
    "/refresh",
    response_model=SessionResponse,
    dependencies=[Depends(enforce_login_rate_limit)],
)
async def refresh_tokens(
    request: Request,
    response: Response,
    body: RefreshRequest | None = None,
    manager: SessionManager = Depends(get_session_manager),
    cookies: RefreshCookiePolicy = Depends(get_cookie_policy),
):
    """Exchange the refresh cookie (or body token) for a new token pair.

    The refresh token is rotated on every call. It is echoed in the body only
    for clients that sent it in the body.
    """
    cookie_token = cookies.read(request)
    body_token = body.refresh_token if body else None
    presented = cookie_token or body_token

    try:
        result = await manager.refresh(presented)
    except (TokenRevokedError, InvalidRefreshTokenError) as e:
        rejected: JSONResponse = auth_error_response(e)
        cookies.clear_refresh_cookie(rejected)
        return rejected

    cookies.set_refresh_cookie(response, result.refresh_token)
    return _session_response(result, echo_refresh_token=cookie_token is None)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    manager: SessionManager = Depends(get_session_manager),
    cookies: RefreshCookiePolicy = Depends(get_cookie_policy),
) -> MessageResponse:
    """Log out. Always succeeds, with or without valid credentials."""
    access_token = extract_from_header(request.headers.get("Authorization"))
    await manager.logout(access_token, get_session_user_id(request))

    cookies.clear_refresh_cookie(response)
    if "session" in request.scope:
        request.session.clear()

    return MessageResponse(message="Logged out successfully")


@router.get("/user", response_model=CurrentUserResponse)
async def get_user(current_user: User = Depends(get_current_user)) -> CurrentUserResponse:
    """Return the authenticated user's profile."""
    return CurrentUserResponse(user=UserResponse.model_validate(current_user))


@router.get("/status", response_model=AuthStatusResponse)
async def get_auth_status(user: User | None = Depends(get_optional_user)) -> AuthStatusResponse:
    """Report whether the caller is authenticated. Never fails."""
    return AuthStatusResponse(
        authenticated=user is not None,
        user=UserResponse.model_validate(user) if user is not None else None,
    )
