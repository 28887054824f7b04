"""Reminder CRUD shared by the calendar page and the deal pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fields import ReminderTag
from app.schemas.deals import TeamDeal
from app.schemas.players import Player
from app.schemas.reminders import Reminder
from app.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

UPCOMING_LIMIT = 10


@dataclass
class ReminderFormData:
    """Raw form data from request (all strings)."""

    title: str
    description: str | None = None
    due_date: str | None = None
    tag: str | None = None
    player_id: str | None = None
    team_deal_id: str | None = None


@dataclass
class ParsedReminderData:
    title: str
    description: str | None = None
    due_date: date | None = None
    tag: ReminderTag = ReminderTag.general
    player_id: int | None = None
    team_deal_id: int | None = None
    contract_id: int | None = None


def _parse_optional_int(val: str | None) -> int | None:
    if not val or not val.strip():
        return None
    try:
        return int(val.strip())
    except ValueError:
        return None


def parse_reminder_form(data: ReminderFormData) -> ParsedReminderData | str:
    """Parse and validate reminder form data.

    Returns:
        ParsedReminderData if parsing succeeds, error message string if it fails
    """
    title = (data.title or "").strip()
    if not title:
        return "Title is required."

    due: date | None = None
    if data.due_date and data.due_date.strip():
        try:
            due = date.fromisoformat(data.due_date.strip())
        except ValueError:
            return "Invalid due date. Use YYYY-MM-DD."

    team_deal_id = _parse_optional_int(data.team_deal_id)
    tag_raw = (data.tag or "").strip()
    if tag_raw:
        try:
            tag = ReminderTag(tag_raw)
        except ValueError:
            return f"Unknown tag: {tag_raw}"
    else:
        tag = ReminderTag.deal if team_deal_id is not None else ReminderTag.general

    return ParsedReminderData(
        title=title,
        description=(data.description or "").strip() or None,
        due_date=due,
        tag=tag,
        player_id=_parse_optional_int(data.player_id),
        team_deal_id=team_deal_id,
    )


def effective_sort_key(reminder: Reminder) -> tuple[int, date]:
    """Reminders without a due date sort last."""
    if reminder.due_date is None:
        return (1, date.max)
    return (0, reminder.due_date)


async def fetch_reminders(
    db: AsyncSession, user_id: int, *conditions
) -> list[Reminder]:
    """Owner-scoped reminder query; the caller owns the transaction."""
    result = await db.execute(
        select(Reminder)
        .where(Reminder.user_id == user_id, *conditions)  # type: ignore[arg-type]
        .order_by(Reminder.due_date, Reminder.id)  # type: ignore[arg-type]
    )
    return list(result.scalars().all())


async def load_reminders(db: AsyncSession, user_id: int) -> list[Reminder]:
    """All of the agent's reminders ordered by due date."""
    async with db.begin():
        reminders = await fetch_reminders(db, user_id)
    return sorted(reminders, key=effective_sort_key)


def upcoming_reminders(
    reminders: list[Reminder], today: date, limit: int = UPCOMING_LIMIT
) -> list[Reminder]:
    """Incomplete reminders due today or later, soonest first."""
    upcoming = [
        r for r in reminders if r.due_date is not None and r.due_date >= today and not r.completed
    ]
    upcoming.sort(key=effective_sort_key)
    return upcoming[:limit]


def overdue_reminders(reminders: list[Reminder], today: date) -> list[Reminder]:
    return [
        r for r in reminders if r.due_date is not None and r.due_date < today and not r.completed
    ]


async def _check_links(db: AsyncSession, user_id: int, data: ParsedReminderData) -> None:
    if data.player_id is not None:
        player = await db.get(Player, data.player_id)
        if player is None or player.user_id != user_id:
            raise ValidationError("Unknown player.")
    if data.team_deal_id is not None:
        deal = await db.get(TeamDeal, data.team_deal_id)
        if deal is None or deal.user_id != user_id:
            raise ValidationError("Unknown team deal.")
        if data.player_id is not None and deal.player_id != data.player_id:
            raise ValidationError("That team is not in this player's pipeline.")


async def create_reminder(
    db: AsyncSession, user_id: int, data: ParsedReminderData
) -> Reminder:
    async with db.begin():
        await _check_links(db, user_id, data)
        now = datetime.utcnow()
        reminder = Reminder(
            user_id=user_id,
            title=data.title,
            description=data.description,
            due_date=data.due_date,
            tag=data.tag,
            completed=False,
            player_id=data.player_id,
            team_deal_id=data.team_deal_id,
            contract_id=data.contract_id,
            created_at=now,
            updated_at=now,
        )
        db.add(reminder)
        await db.flush()
    logger.info("Created reminder id=%s for user id=%s", reminder.id, user_id)
    return reminder


async def _get_owned_reminder(db: AsyncSession, user_id: int, reminder_id: int) -> Reminder:
    reminder = await db.get(Reminder, reminder_id)
    if reminder is None or reminder.user_id != user_id:
        raise NotFoundError("reminder", reminder_id)
    return reminder


async def toggle_reminder(db: AsyncSession, user_id: int, reminder_id: int) -> Reminder:
    """Flip a reminder between complete and incomplete."""
    async with db.begin():
        reminder = await _get_owned_reminder(db, user_id, reminder_id)
        reminder.completed = not reminder.completed
        reminder.updated_at = datetime.utcnow()
    return reminder


async def delete_reminder(db: AsyncSession, user_id: int, reminder_id: int) -> None:
    async with db.begin():
        reminder = await _get_owned_reminder(db, user_id, reminder_id)
        await db.delete(reminder)
    logger.info("Deleted reminder id=%s", reminder_id)
