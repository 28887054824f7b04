"""Agent accounts, login sessions and calendar feed tokens.

Every agent-owned table carries a `user_id` pointing at `auth_users.id`;
services filter on it so an agent only ever sees their own rows.
"""

from __future__ import annotations

from datetime import datetime

from sqlmodel import Field, SQLModel


class AuthUser(SQLModel, table=True):  # type: ignore[call-arg]
    """Agent account."""

    __tablename__ = "auth_users"

    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    is_active: bool = Field(default=True, index=True)
    password_hash: str

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    last_login_at: datetime | None = Field(default=None)


class AuthSession(SQLModel, table=True):  # type: ignore[call-arg]
    """Server-side session for an agent (cookie token is hashed)."""

    __tablename__ = "auth_sessions"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="auth_users.id", index=True)
    token_hash: str = Field(unique=True, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_seen_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    expires_at: datetime = Field(index=True)
    revoked_at: datetime | None = Field(default=None, index=True)

    ip: str | None = Field(default=None)
    user_agent: str | None = Field(default=None)
    remember_me: bool = Field(default=False, index=True)


class CalendarFeedToken(SQLModel, table=True):  # type: ignore[call-arg]
    """Bearer token embedded in a calendar subscription URL (hash only)."""

    __tablename__ = "calendar_feed_tokens"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="auth_users.id", index=True)
    token_hash: str = Field(unique=True, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_used_at: datetime | None = Field(default=None)
    revoked_at: datetime | None = Field(default=None, index=True)
