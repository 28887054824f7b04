"""Monday-first month grid for the reminders calendar."""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from app.schemas.reminders import Reminder

MAX_REMINDERS_PER_DAY = 3


@dataclass
class CalendarDay:
    day: date
    reminders: list[Reminder] = field(default_factory=list)
    more: int = 0
    is_today: bool = False

    @property
    def number(self) -> int:
        return self.day.day


@dataclass
class MonthGrid:
    year: int
    month: int
    weeks: list[list[CalendarDay | None]]
    weekday_names: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

    @property
    def title(self) -> str:
        return f"{calendar.month_name[self.month]} {self.year}"

    @property
    def param(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def prev_param(self) -> str:
        year, month = shift_month(self.year, self.month, -1)
        return f"{year:04d}-{month:02d}"

    @property
    def next_param(self) -> str:
        year, month = shift_month(self.year, self.month, 1)
        return f"{year:04d}-{month:02d}"


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def parse_month_param(value: str | None, today: date) -> tuple[int, int]:
    """Read ``YYYY-MM``; anything unparseable falls back to the current month."""
    if not value:
        return today.year, today.month
    try:
        year_raw, month_raw = value.strip().split("-", 1)
        year, month = int(year_raw), int(month_raw)
    except ValueError:
        return today.year, today.month
    if 1 <= month <= 12 and 1 <= year <= 9999:
        return year, month
    return today.year, today.month


def build_month_grid(
    reminders: Sequence[Reminder],
    year: int,
    month: int,
    today: date,
) -> MonthGrid:
    """Lay out one month with up to three reminders per day plus an overflow count.

    Leading cells before the 1st are ``None``; the last week is padded the
    same way so every week has seven cells.
    """
    by_day: dict[date, list[Reminder]] = {}
    for reminder in reminders:
        due = reminder.due_date
        if due is None or due.year != year or due.month != month:
            continue
        by_day.setdefault(due, []).append(reminder)

    weeks: list[list[CalendarDay | None]] = []
    for week in calendar.Calendar(firstweekday=calendar.MONDAY).monthdatescalendar(year, month):
        cells: list[CalendarDay | None] = []
        for day in week:
            if day.month != month:
                cells.append(None)
                continue
            day_reminders = by_day.get(day, [])
            cells.append(
                CalendarDay(
                    day=day,
                    reminders=day_reminders[:MAX_REMINDERS_PER_DAY],
                    more=max(0, len(day_reminders) - MAX_REMINDERS_PER_DAY),
                    is_today=day == today,
                )
            )
        weeks.append(cells)
    return MonthGrid(year=year, month=month, weeks=weeks)
