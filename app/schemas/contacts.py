"""Address book of club staff, scouts and other agents."""

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class Contact(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__ = "contacts"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="auth_users.id", index=True)

    name: str = Field(index=True)
    role: Optional[str] = Field(default=None, index=True)  # see CONTACT_ROLES
    email: Optional[str] = Field(default=None)
    phone: Optional[str] = Field(default=None)
    team_id: Optional[int] = Field(default=None, foreign_key="teams.id", index=True)
    notes: Optional[str] = Field(default=None)

    # Player-linked contacts mirror the player record and are read-only here
    player_id: Optional[int] = Field(default=None, foreign_key="players.id")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
