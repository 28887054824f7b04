from datetime import date, datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from app.models.fields import ReminderTag


class Reminder(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__ = "reminders"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="auth_users.id", index=True)

    title: str
    description: Optional[str] = Field(default=None)
    due_date: Optional[date] = Field(default=None, index=True)
    tag: ReminderTag = Field(default=ReminderTag.general)
    completed: bool = Field(default=False, index=True)
    auto_generated: bool = Field(default=False)

    # Optional links; a reminder's lifecycle is independent of them
    player_id: Optional[int] = Field(default=None, foreign_key="players.id", index=True)
    team_deal_id: Optional[int] = Field(
        default=None, foreign_key="team_deals.id", index=True
    )
    contract_id: Optional[int] = Field(default=None, foreign_key="contracts.id")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
