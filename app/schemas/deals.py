"""Team negotiation pipeline tables."""

from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from app.models.fields import DealStage


class TeamDeal(SQLModel, table=True):  # type: ignore[call-arg]
    """One (player, team) negotiation."""

    __tablename__ = "team_deals"
    __table_args__ = (
        UniqueConstraint("player_id", "team_id", name="uq_team_deals_player_team"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="auth_users.id", index=True)
    player_id: int = Field(foreign_key="players.id", index=True)
    team_id: int = Field(foreign_key="teams.id", index=True)

    deal_stage: DealStage = Field(default=DealStage.ongoing, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class DealNote(SQLModel, table=True):  # type: ignore[call-arg]
    """Append-only note on a team deal."""

    __tablename__ = "deal_notes"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="auth_users.id", index=True)
    team_deal_id: int = Field(foreign_key="team_deals.id", index=True)

    note_text: str
    deal_stage_at_time: Optional[DealStage] = Field(default=None)

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
