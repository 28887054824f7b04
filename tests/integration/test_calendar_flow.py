"""Integration tests for the reminders calendar, the .ics export and the feed."""

from __future__ import annotations

from datetime import date, timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fields import ReminderTag
from app.schemas.reminders import Reminder
from app.services.auth_service import issue_calendar_token
from app.services.ical_service import parse_ical_events
from app.services.reminder_service import ParsedReminderData, create_reminder
from tests.integration.auth_helpers import create_agent, sign_in
from tests.integration.factories import fetch_all, fetch_one, make_player


@pytest_asyncio.fixture
async def agent(app_client: AsyncClient, db_session: AsyncSession) -> int:
    user_id = await create_agent(db_session)
    await sign_in(app_client, db_session, user_id)
    return user_id


async def _reminder(db: AsyncSession, user_id: int, title: str, due: date | None) -> int:
    reminder = await create_reminder(db, user_id, ParsedReminderData(title=title, due_date=due))
    return int(reminder.id)  # type: ignore[arg-type]


@pytest.mark.asyncio
class TestReminders:
    async def test_calendar_page_renders_month(self, app_client: AsyncClient, agent: int):
        response = await app_client.get("/calendar", params={"month": "2025-03"})
        assert response.status_code == 200
        assert "March 2025" in response.text

    async def test_add_reminder_with_player(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        player_id = await make_player(db_session, agent)
        due = date.today() + timedelta(days=3)

        response = await app_client.post(
            "/calendar/reminders",
            data={
                "title": "Medical check",
                "due_date": due.isoformat(),
                "tag": "player",
                "player_id": str(player_id),
                "month": due.strftime("%Y-%m"),
            },
            follow_redirects=False,
        )
        assert response.status_code == 303
        assert response.headers["location"].startswith(f"/calendar?month={due:%Y-%m}")

        reminder = await fetch_one(db_session, select(Reminder))
        assert reminder.title == "Medical check"
        assert reminder.tag is ReminderTag.player
        assert reminder.player_id == player_id
        assert reminder.completed is False

        page = await app_client.get("/calendar")
        assert "Medical check" in page.text

    async def test_reminder_needs_a_title(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        response = await app_client.post(
            "/calendar/reminders", data={"title": "  "}, follow_redirects=False
        )
        assert response.status_code == 303
        assert "error=" in response.headers["location"]
        assert await fetch_all(db_session, select(Reminder)) == []

    async def test_foreign_player_link_is_rejected(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        other = await create_agent(db_session, email="other@example.com")
        player_id = await make_player(db_session, other)

        response = await app_client.post(
            "/calendar/reminders",
            data={"title": "Sneaky", "player_id": str(player_id)},
            follow_redirects=False,
        )
        assert "error=" in response.headers["location"]
        assert await fetch_all(db_session, select(Reminder)) == []

    async def test_toggle_and_delete(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        reminder_id = await _reminder(db_session, agent, "Renewal call", date.today())

        response = await app_client.post(
            f"/calendar/reminders/{reminder_id}/toggle", follow_redirects=False
        )
        assert response.status_code == 303
        assert (await fetch_one(db_session, select(Reminder))).completed is True

        await app_client.post(f"/calendar/reminders/{reminder_id}/toggle", follow_redirects=False)
        assert (await fetch_one(db_session, select(Reminder))).completed is False

        response = await app_client.post(
            f"/calendar/reminders/{reminder_id}/delete", follow_redirects=False
        )
        assert response.status_code == 303
        assert await fetch_all(db_session, select(Reminder)) == []

    async def test_toggle_foreign_reminder_is_404(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        other = await create_agent(db_session, email="other@example.com")
        reminder_id = await _reminder(db_session, other, "Not yours", None)

        response = await app_client.post(f"/calendar/reminders/{reminder_id}/toggle")
        assert response.status_code == 404


@pytest.mark.asyncio
class TestICalendar:
    async def test_export_contains_open_dated_reminders_only(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        due = date(2030, 5, 20)
        await _reminder(db_session, agent, "Sign, then celebrate; maybe", due)
        await _reminder(db_session, agent, "Someday", None)
        done_id = await _reminder(db_session, agent, "Already done", due)
        await app_client.post(f"/calendar/reminders/{done_id}/toggle")

        response = await app_client.get("/calendar/export.ics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/calendar")
        assert response.headers["content-disposition"].startswith("attachment;")
        assert ".ics" in response.headers["content-disposition"]

        events = parse_ical_events(response.text)
        assert [event.summary for event in events] == ["Sign, then celebrate; maybe"]
        assert events[0].start == due

    async def test_feed_requires_a_live_token(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        assert (await app_client.get("/calendar/feed.ics")).status_code == 401
        response = await app_client.get("/calendar/feed.ics", params={"token": "nope"})
        assert response.status_code == 401

    async def test_feed_serves_reminders_without_a_session(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        await _reminder(db_session, agent, "Contract renewal", date(2030, 1, 2))
        raw_token = await issue_calendar_token(db_session, user_id=agent)
        app_client.cookies.clear()

        response = await app_client.get("/calendar/feed.ics", params={"token": raw_token})
        assert response.status_code == 200
        assert "BEGIN:VCALENDAR" in response.text
        assert "SUMMARY:Contract renewal" in response.text

    async def test_rotating_the_token_revokes_the_old_one(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        old_token = await issue_calendar_token(db_session, user_id=agent)

        response = await app_client.post("/calendar/subscription")
        assert response.status_code == 200
        assert "feed.ics?token=" in response.text
        assert "webcal://" in response.text

        feed = await app_client.get("/calendar/feed.ics", params={"token": old_token})
        assert feed.status_code == 401

    async def test_inactive_agent_feed_is_refused(
        self, app_client: AsyncClient, db_session: AsyncSession
    ):
        user_id = await create_agent(db_session, email="gone@example.com", is_active=False)
        raw_token = await issue_calendar_token(db_session, user_id=user_id)

        response = await app_client.get("/calendar/feed.ics", params={"token": raw_token})
        assert response.status_code == 401
