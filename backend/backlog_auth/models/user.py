"""User model for Google OAuth and password accounts."""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backlog_auth.models.base import BaseModel


class User(BaseModel):
    """A backlog tracker user.

    ``refresh_token`` holds the single live refresh credential. Issuing a new
    one overwrites it, which invalidates the previous token through the
    ownership check in the refresh workflow.

    ``failed_login_attempts`` and ``locked_until`` make up the lockout state;
    an account is locked only while ``locked_until`` is in the future.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    profile_picture: Mapped[str | None] = mapped_column(Text, nullable=True)

    google_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    provider: Mapped[str] = mapped_column(String(50), nullable=False, default="google")
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Session management
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Lockout
    failed_login_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.username}>"
