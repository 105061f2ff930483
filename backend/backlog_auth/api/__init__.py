# Backlog Auth API routers
from backlog_auth.api.admin import router as admin_router
from backlog_auth.api.auth import router as auth_router
from backlog_auth.api.health import router as health_router

__all__ = ["admin_router", "auth_router", "health_router"]
