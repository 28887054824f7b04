#!/usr/bin/env python
"""Seed the shared competitions and teams used by deals and contracts.

Usage:
    python scripts/seed_reference_data.py

Rows are matched by name, so re-running the script only adds what is missing.
"""

import asyncio
import sys

from dotenv import load_dotenv
from sqlalchemy import select

load_dotenv()


REFERENCE_DATA = {
    ("Lega Basket Serie A", "Italy"): [
        ("Olimpia Milano", "Milano"),
        ("Virtus Bologna", "Bologna"),
        ("Umana Reyer Venezia", "Venezia"),
        ("Dinamo Sassari", "Sassari"),
        ("Germani Brescia", "Brescia"),
        ("Dolomiti Energia Trento", "Trento"),
    ],
    ("Serie A2", "Italy"): [
        ("Fortitudo Bologna", "Bologna"),
        ("Pallacanestro Cantù", "Cantù"),
        ("Urania Milano", "Milano"),
    ],
    ("Liga ACB", "Spain"): [
        ("Real Madrid", "Madrid"),
        ("FC Barcelona", "Barcelona"),
        ("Valencia Basket", "Valencia"),
    ],
}


async def seed_reference_data() -> None:
    """Insert missing competitions and teams."""
    import os

    if not os.getenv("DATABASE_URL"):
        print("ERROR: DATABASE_URL not configured")
        sys.exit(1)

    from app.schemas.reference import Competition, Team
    from app.utils.db_async import SessionLocal, dispose_engine, init_db

    await init_db()

    added = 0
    skipped = 0
    async with SessionLocal() as session:
        async with session.begin():
            for (competition_name, country), teams in REFERENCE_DATA.items():
                competition = (
                    await session.execute(
                        select(Competition).where(Competition.name == competition_name)  # type: ignore[arg-type]
                    )
                ).scalar_one_or_none()
                if competition is None:
                    competition = Competition(name=competition_name, country=country)
                    session.add(competition)
                    await session.flush()
                    print(f"  ADD: {competition_name}")
                    added += 1

                for team_name, city in teams:
                    existing = (
                        await session.execute(
                            select(Team).where(Team.name == team_name)  # type: ignore[arg-type]
                        )
                    ).scalar_one_or_none()
                    if existing:
                        print(f"  SKIP: {team_name} (already exists)")
                        skipped += 1
                        continue
                    session.add(Team(name=team_name, city=city, competition_id=competition.id))
                    print(f"  ADD: {team_name}")
                    added += 1

    print(f"\nSeeding complete: {added} added, {skipped} skipped")
    await dispose_engine()


if __name__ == "__main__":
    print("Seeding competitions and teams...")
    asyncio.run(seed_reference_data())
