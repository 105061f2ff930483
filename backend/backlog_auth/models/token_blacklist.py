"""Blacklisted JWT tokens, kept across process restarts."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backlog_auth.models.base import BaseModel


class TokenBlacklist(BaseModel):
    """A revoked credential, keyed by the exact token string.

    ``expires_at`` mirrors the token's own ``exp`` claim so that cleanup can
    drop the row once the token would have stopped working anyway.
    """

    __tablename__ = "token_blacklist"

    token: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<TokenBlacklist {self.type} user={self.user_id}>"
