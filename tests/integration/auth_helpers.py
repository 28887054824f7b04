"""Integration-test helpers for agent accounts, sessions and reference data."""

from __future__ import annotations

from datetime import datetime

from httpx import AsyncClient, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.schemas.auth import AuthUser
from app.schemas.reference import Competition, Team
from app.services.auth_service import (
    SESSION_COOKIE_NAME,
    hash_pbkdf2_sha256,
    issue_session,
)

AGENT_EMAIL = "agent@example.com"
AGENT_PASSWORD = "correct horse battery staple"


async def create_agent(
    db_session: AsyncSession,
    *,
    email: str = AGENT_EMAIL,
    password: str = AGENT_PASSWORD,
    is_active: bool = True,
) -> int:
    """Insert an agent account and return its id."""
    now = datetime.utcnow()
    user = AuthUser(
        email=email.casefold(),
        password_hash=hash_pbkdf2_sha256(password, iterations=1_000),
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )
    db_session.add(user)
    await db_session.commit()
    return int(user.id)  # type: ignore[arg-type]


async def sign_in(app_client: AsyncClient, db_session: AsyncSession, user_id: int) -> str:
    """Issue a session for ``user_id`` and attach its cookie to the client."""
    raw_token, _session = await issue_session(
        db_session, user_id=user_id, remember_me=False, ip=None, user_agent="pytest"
    )
    app_client.cookies.set(SESSION_COOKIE_NAME, raw_token)
    return raw_token


async def login_agent(
    app_client: AsyncClient,
    *,
    email: str = AGENT_EMAIL,
    password: str = AGENT_PASSWORD,
    remember: bool = False,
    next_path: str | None = None,
) -> Response:
    """Log in via the HTML form and return the response (no redirect follow)."""
    params = {}
    if next_path is not None:
        params["next"] = next_path

    data = {"email": email, "password": password}
    if remember:
        data["remember"] = "1"

    return await app_client.post(
        "/login",
        params=params,
        data=data,
        follow_redirects=False,
    )


async def create_team(
    db_session: AsyncSession,
    *,
    name: str = "Olimpia Milano",
    city: str | None = "Milano",
    competition_name: str = "Lega Basket Serie A",
) -> tuple[int, int]:
    """Insert a competition and one team in it; return (team_id, competition_id)."""
    competition = Competition(name=competition_name, country="Italy")
    db_session.add(competition)
    await db_session.flush()
    team = Team(name=name, city=city, competition_id=competition.id)
    db_session.add(team)
    await db_session.commit()
    return int(team.id), int(competition.id)  # type: ignore[arg-type]
