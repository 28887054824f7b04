"""Pure view-model builders for the two pipeline boards and the notes feed.

Nothing here touches the database; the same input always yields an equal
output, so a board can be rebuilt from reloaded data as often as needed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Sequence

from app.models.fields import DealStage, PlayerDealStatus
from app.utils.formatting import days_ago_label, truncate

NOTE_PREVIEW_LENGTH = 50


@dataclass(frozen=True)
class PlayerCard:
    player_id: int
    name: str
    initials: str
    position: str | None
    status: str
    active_deals: int
    team_name: str | None = None


@dataclass(frozen=True)
class DealCard:
    team_deal_id: int
    team_id: int
    team_name: str
    competition_name: str | None
    stage: str
    updated_label: str
    note_preview: str
    note_count: int = 0


@dataclass(frozen=True)
class BoardColumn:
    key: str
    label: str
    cards: tuple = ()

    @property
    def count(self) -> int:
        return len(self.cards)


@dataclass(frozen=True)
class FeedItem:
    """One entry of the merged notes/reminders feed on a player's deal board."""

    kind: str  # "note" | "reminder"
    item_id: int
    text: str
    team_deal_id: int | None
    team_name: str | None
    created_at: datetime | None
    due_date: date | None = None
    stage_label: str | None = None
    description: str | None = None
    completed: bool = False

    @property
    def sort_moment(self) -> datetime:
        if self.created_at is not None:
            return self.created_at
        if self.due_date is not None:
            return datetime.combine(self.due_date, datetime.min.time())
        return datetime.min


@dataclass
class DealRow:
    """A team deal joined with its team, competition and notes summary."""

    deal: object
    team_name: str
    team_city: str | None = None
    competition_id: int | None = None
    competition_name: str | None = None
    latest_note: str | None = None
    note_count: int = 0
    extra: dict = field(default_factory=dict)


def _player_matches(row, needle: str) -> bool:
    player = row.player
    haystack = " ".join([player.first_name, player.last_name, player.email or ""])
    return needle in haystack.casefold()


def build_player_board(players: Sequence, search: str | None = None) -> list[BoardColumn]:
    """Group player rows into the three status columns.

    ``players`` holds ``PlayerRow`` objects; the badge on each card counts the
    player's ongoing and sent deals.
    """
    needle = (search or "").strip().casefold()
    buckets: dict[str, list[PlayerCard]] = {status.value: [] for status in PlayerDealStatus}
    for row in players:
        if needle and not _player_matches(row, needle):
            continue
        player = row.player
        status = player.player_deal_status.value
        buckets[status].append(
            PlayerCard(
                player_id=player.id,
                name=player.full_name,
                initials=player.initials,
                position=player.position,
                status=status,
                active_deals=row.active_deals,
                team_name=row.team_name,
            )
        )
    return [
        BoardColumn(key=status.value, label=status.label, cards=tuple(buckets[status.value]))
        for status in PlayerDealStatus
    ]


def build_deal_board(deals: Sequence[DealRow], now: datetime) -> list[BoardColumn]:
    """Group a player's team deals into the four stage columns."""
    buckets: dict[str, list[DealCard]] = {stage.value: [] for stage in DealStage}
    for row in deals:
        deal = row.deal
        stage = deal.deal_stage.value
        buckets[stage].append(
            DealCard(
                team_deal_id=deal.id,
                team_id=deal.team_id,
                team_name=row.team_name,
                competition_name=row.competition_name,
                stage=stage,
                updated_label=days_ago_label(deal.updated_at, now),
                note_preview=truncate(row.latest_note, NOTE_PREVIEW_LENGTH),
                note_count=row.note_count,
            )
        )
    return [
        BoardColumn(key=stage.value, label=stage.label, cards=tuple(buckets[stage.value]))
        for stage in DealStage
    ]


def build_notes_feed(
    notes: Iterable,
    reminders: Iterable,
    deals: Sequence[DealRow],
    team_id: int | None = None,
) -> list[FeedItem]:
    """Merge deal notes and incomplete deal reminders, newest first.

    When ``team_id`` is given only entries for that team's deal are kept.
    """
    deal_teams = {row.deal.id: (row.deal.team_id, row.team_name) for row in deals}
    items: list[FeedItem] = []
    for note in notes:
        team = deal_teams.get(note.team_deal_id)
        items.append(
            FeedItem(
                kind="note",
                item_id=note.id,
                text=note.note_text,
                team_deal_id=note.team_deal_id,
                team_name=team[1] if team else None,
                created_at=note.created_at,
                stage_label=note.deal_stage_at_time.label if note.deal_stage_at_time else None,
            )
        )
    for reminder in reminders:
        if reminder.completed:
            continue
        team = deal_teams.get(reminder.team_deal_id) if reminder.team_deal_id else None
        items.append(
            FeedItem(
                kind="reminder",
                item_id=reminder.id,
                text=reminder.title,
                team_deal_id=reminder.team_deal_id,
                team_name=team[1] if team else None,
                created_at=reminder.created_at,
                due_date=reminder.due_date,
                description=reminder.description,
                completed=reminder.completed,
            )
        )

    if team_id is not None:
        wanted = {deal_id for deal_id, (tid, _name) in deal_teams.items() if tid == team_id}
        items = [item for item in items if item.team_deal_id in wanted]

    items.sort(key=lambda item: (item.sort_moment, item.kind, item.item_id), reverse=True)
    return items
