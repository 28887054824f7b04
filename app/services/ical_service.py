"""iCalendar (RFC 5545) export of reminders, plus a small reader for it.

One all-day VEVENT per incomplete reminder with a due date. Text values are
escaped and long lines folded at 75 octets; ``parse_ical_events`` reverses
both so a round trip restores titles and descriptions exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable

from app.schemas.reminders import Reminder

CRLF = "\r\n"
MAX_LINE_OCTETS = 75

CALENDAR_HEADER = (
    "BEGIN:VCALENDAR",
    "VERSION:2.0",
    "PRODID:-//AgentPlay//Agent Platform Calendar//IT",
    "CALSCALE:GREGORIAN",
    "METHOD:PUBLISH",
    "X-WR-CALNAME:AgentPlay Reminders",
    "X-WR-CALDESC:Basketball agent reminders",
)

UID_DOMAIN = "agentplay.app"


@dataclass(frozen=True)
class ICalEvent:
    uid: str
    summary: str
    start: date | None
    description: str | None = None


def escape_text(text: str | None) -> str:
    if not text:
        return ""
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\n")
        .replace("\n", "\\n")
    )


def unescape_text(text: str) -> str:
    out: list[str] = []
    chars = iter(text)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, "")
        if nxt in ("n", "N"):
            out.append("\n")
        else:
            out.append(nxt)
    return "".join(out)


def fold_line(line: str) -> list[str]:
    """Split a content line into 75-octet chunks without breaking UTF-8 characters."""
    if len(line.encode("utf-8")) <= MAX_LINE_OCTETS:
        return [line]
    chunks: list[str] = []
    current = ""
    limit = MAX_LINE_OCTETS
    for ch in line:
        if len((current + ch).encode("utf-8")) > limit:
            chunks.append(current)
            current = ""
            # Continuation lines start with a space, which counts toward the limit
            limit = MAX_LINE_OCTETS - 1
        current += ch
    chunks.append(current)
    return [chunks[0]] + [" " + chunk for chunk in chunks[1:]]


def _ical_date(value: date) -> str:
    return value.strftime("%Y%m%d")


def exportable_reminders(reminders: Iterable[Reminder]) -> list[Reminder]:
    """Incomplete reminders that have a due date, soonest first."""
    selected = [r for r in reminders if not r.completed and r.due_date is not None]
    selected.sort(key=lambda r: (r.due_date, r.id))
    return selected


def build_ical(
    reminders: Iterable[Reminder],
    now: datetime | None = None,
    timezone_name: str = "Europe/Rome",
) -> str:
    """Render the reminder calendar as CRLF-terminated iCalendar text."""
    stamp = (now or datetime.utcnow()).strftime("%Y%m%dT%H%M%SZ")
    lines: list[str] = [*CALENDAR_HEADER, f"X-WR-TIMEZONE:{timezone_name}"]
    for reminder in exportable_reminders(reminders):
        due = reminder.due_date
        assert due is not None
        lines.append("BEGIN:VEVENT")
        lines.append(f"UID:{reminder.id}@{UID_DOMAIN}")
        lines.append(f"DTSTART;VALUE=DATE:{_ical_date(due)}")
        lines.append(f"DTEND;VALUE=DATE:{_ical_date(due + timedelta(days=1))}")
        lines.append(f"DTSTAMP:{stamp}")
        lines.append(f"SUMMARY:{escape_text(reminder.title)}")
        if reminder.description:
            lines.append(f"DESCRIPTION:{escape_text(reminder.description)}")
        lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")

    folded: list[str] = []
    for line in lines:
        folded.extend(fold_line(line))
    return CRLF.join(folded) + CRLF


def export_filename(today: date) -> str:
    return f"agentplay-reminders-{today.isoformat()}.ics"


def _unfold(text: str) -> list[str]:
    lines: list[str] = []
    for raw in text.replace("\r\n", "\n").split("\n"):
        if raw.startswith((" ", "\t")) and lines:
            lines[-1] += raw[1:]
        elif raw:
            lines.append(raw)
    return lines


def parse_ical_events(text: str) -> list[ICalEvent]:
    """Read back the VEVENTs of a calendar produced by ``build_ical``."""
    events: list[ICalEvent] = []
    current: dict[str, str] | None = None
    for line in _unfold(text):
        if line == "BEGIN:VEVENT":
            current = {}
            continue
        if line == "END:VEVENT":
            if current is not None:
                start_raw = current.get("DTSTART")
                events.append(
                    ICalEvent(
                        uid=current.get("UID", ""),
                        summary=unescape_text(current.get("SUMMARY", "")),
                        start=(
                            datetime.strptime(start_raw[:8], "%Y%m%d").date()
                            if start_raw
                            else None
                        ),
                        description=(
                            unescape_text(current["DESCRIPTION"])
                            if "DESCRIPTION" in current
                            else None
                        ),
                    )
                )
            current = None
            continue
        if current is None:
            continue
        name, _, value = line.partition(":")
        current[name.split(";", 1)[0].upper()] = value
    return events
