"""Players under management and prospects (pre-player leads)."""

from datetime import date, datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from app.models.fields import PlayerDealStatus


class Player(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__ = "players"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="auth_users.id", index=True)

    first_name: str
    last_name: str = Field(index=True)
    date_of_birth: Optional[date] = Field(default=None)
    position: Optional[str] = Field(default=None, index=True)
    email: Optional[str] = Field(default=None)
    phone: Optional[str] = Field(default=None)

    player_deal_status: PlayerDealStatus = Field(
        default=PlayerDealStatus.free_agent, index=True
    )
    # Not a declared FK: contracts.player_id already points back here.
    current_contract_id: Optional[int] = Field(default=None, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def initials(self) -> str:
        return f"{self.first_name[:1]}{self.last_name[:1]}".upper()


class Prospect(SQLModel, table=True):  # type: ignore[call-arg]
    """A lead that is not yet under management.

    Conversion copies the identity into a new Player row and flags the
    prospect; the prospect itself is never turned into a player.
    """

    __tablename__ = "prospects"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="auth_users.id", index=True)

    first_name: str
    last_name: str
    email: Optional[str] = Field(default=None)
    phone: Optional[str] = Field(default=None)
    notes: Optional[str] = Field(default=None)

    is_converted: bool = Field(default=False, index=True)
    converted_player_id: Optional[int] = Field(default=None, foreign_key="players.id")

    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
