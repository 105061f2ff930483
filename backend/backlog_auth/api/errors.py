"""Exception handlers rendering every failure as a stable error body.

Body shape: ``{"error": CODE, "message": text, "status": http_status}``.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backlog_auth.core.config import settings
from backlog_auth.core.logging import get_logger
from backlog_auth.services.errors import AuthError

logger = get_logger("errors")

_STATUS_TO_CODE = {
    400: "BAD_REQUEST",
    401: "AUTHENTICATION_REQUIRED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    429: "RATE_LIMIT_EXCEEDED",
}


def error_body(code: str, message: str, status_code: int) -> dict:
    return {"error": code, "message": message, "status": status_code}


def error_response(code: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error_body(code, message, status_code))


def auth_error_response(exc: AuthError) -> JSONResponse:
    response = error_response(exc.code, exc.message, exc.status_code)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for auth errors, validation errors and crashes."""

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        log_fn = logger.error if exc.status_code >= 500 else logger.info
        log_fn(f"{exc.code} on {request.method} {request.url.path}")
        return auth_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        fields = [".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()]
        message = "Invalid request"
        if any(fields):
            message = f"Invalid request: {', '.join(f for f in fields if f)}"
        return error_response("VALIDATION_ERROR", message, 400)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        code = _STATUS_TO_CODE.get(exc.status_code, "HTTP_ERROR")
        response = error_response(code, str(exc.detail), exc.status_code)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        message = str(exc) if settings.debug else "Internal server error"
        return error_response("INTERNAL_ERROR", message, 500)
