"""Shared reference data: competitions and the teams playing in them."""

from typing import Optional

from sqlmodel import Field, SQLModel


class Competition(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__ = "competitions"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)  # e.g., "Serie A"
    country: Optional[str] = Field(default=None)


class Team(SQLModel, table=True):  # type: ignore[call-arg]
    __tablename__ = "teams"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    city: Optional[str] = Field(default=None)
    competition_id: Optional[int] = Field(
        default=None, foreign_key="competitions.id", index=True
    )
