"""Display helpers shared by services and Jinja templates."""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")


def to_decimal(value: Decimal | float | int | str | None) -> Decimal:
    """Coerce a numeric value to Decimal; None and garbage become zero."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip() or "0")
    except InvalidOperation:
        return Decimal("0")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_euro(amount: Decimal | float | int | str | None) -> str:
    """Format an amount the Italian way, e.g. ``€10.000,00`` or ``-€5,50``."""
    value = quantize_money(to_decimal(amount))
    sign = "-" if value < 0 else ""
    whole, _, cents = f"{abs(value):.2f}".partition(".")
    groups: list[str] = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)
    return f"{sign}€{'.'.join(groups)},{cents}"


def format_date(value: date | datetime | None) -> str:
    """Short human date, e.g. ``31 Dec 2024``; empty string for None."""
    if value is None:
        return ""
    return value.strftime("%d %b %Y")


def calculate_age(date_of_birth: date | None, today: date | None = None) -> int | None:
    if date_of_birth is None:
        return None
    today = today or date.today()
    had_birthday = (today.month, today.day) >= (date_of_birth.month, date_of_birth.day)
    return today.year - date_of_birth.year - (0 if had_birthday else 1)


def days_ago_label(moment: datetime | None, now: datetime) -> str:
    """Relative label used on deal cards: Today / 1 day ago / N days ago."""
    if moment is None:
        return ""
    days = (now - moment).days
    if days <= 0:
        return "Today"
    if days == 1:
        return "1 day ago"
    return f"{days} days ago"


def truncate(text: str | None, limit: int = 50) -> str:
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
