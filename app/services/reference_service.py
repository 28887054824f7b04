"""Loaders for the shared team and competition reference data."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.schemas.reference import Competition, Team


@dataclass
class TeamOption:
    """Team row joined with its competition for select boxes and cards."""

    id: int
    name: str
    city: str | None
    competition_id: int | None
    competition_name: str | None

    @property
    def label(self) -> str:
        return f"{self.name} ({self.city})" if self.city else self.name


async def fetch_team_options(db: AsyncSession) -> list[TeamOption]:
    """Team options query; the caller owns the transaction."""
    result = await db.execute(
        select(Team, Competition.name)  # type: ignore[call-overload]
        .outerjoin(Competition, Competition.id == Team.competition_id)
        .order_by(Team.name)
    )
    return [
        TeamOption(
            id=team.id,
            name=team.name,
            city=team.city,
            competition_id=team.competition_id,
            competition_name=competition_name,
        )
        for team, competition_name in result.all()
    ]


async def fetch_competitions(db: AsyncSession) -> list[Competition]:
    result = await db.execute(
        select(Competition).order_by(Competition.name)  # type: ignore[arg-type]
    )
    return list(result.scalars().all())


async def load_teams(db: AsyncSession) -> list[TeamOption]:
    """Return every team with its competition name, ordered by name."""
    async with db.begin():
        return await fetch_team_options(db)


def filter_team_options(
    teams: list[TeamOption],
    search: str | None,
    exclude_ids: set[int] | None = None,
) -> list[TeamOption]:
    """Substring search over team name/city, minus teams already in a pipeline."""
    exclude_ids = exclude_ids or set()
    needle = (search or "").strip().casefold()
    matches: list[TeamOption] = []
    for team in teams:
        if team.id in exclude_ids:
            continue
        if needle and needle not in team.name.casefold() and needle not in (team.city or "").casefold():
            continue
        matches.append(team)
    return matches
