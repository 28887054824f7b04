"""Contracts and the commission payments they generate."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlmodel import Field, SQLModel

from app.models.fields import PaymentStatus


class Contract(SQLModel, table=True):  # type: ignore[call-arg]
    """A player's contract with a team.

    At most one row per player has is_active=True; every other row is part of
    the player's contract history.
    """

    __tablename__ = "contracts"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="auth_users.id", index=True)
    player_id: int = Field(foreign_key="players.id", index=True)
    team_id: int = Field(foreign_key="teams.id", index=True)
    competition_id: int = Field(foreign_key="competitions.id", index=True)

    contract_value: Decimal = Field(max_digits=14, decimal_places=2)
    commission_percentage: Decimal = Field(max_digits=5, decimal_places=2)
    contract_start_date: date
    contract_end_date: date = Field(index=True)
    notes: Optional[str] = Field(default=None)

    is_active: bool = Field(default=False, index=True)
    added_retroactively: bool = Field(default=False)

    # Traceability link to the negotiation that produced this contract
    team_deal_id: Optional[int] = Field(default=None, foreign_key="team_deals.id")

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Payment(SQLModel, table=True):  # type: ignore[call-arg]
    """Commission owed to the agent for one active contract."""

    __tablename__ = "payments"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="auth_users.id", index=True)
    contract_id: int = Field(foreign_key="contracts.id", index=True)

    amount: Decimal = Field(max_digits=14, decimal_places=2)
    due_date: date = Field(index=True)
    paid_date: Optional[date] = Field(default=None)
    status: PaymentStatus = Field(default=PaymentStatus.pending, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
