# Backlog Auth Models
from backlog_auth.models.base import BaseModel
from backlog_auth.models.token_blacklist import TokenBlacklist
from backlog_auth.models.user import User

__all__ = [
    "BaseModel",
    "TokenBlacklist",
    "User",
]
