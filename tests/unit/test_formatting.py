"""Unit tests for the display helpers shared by services and templates."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from app.utils.formatting import (
    calculate_age,
    days_ago_label,
    format_date,
    format_euro,
    quantize_money,
    to_decimal,
    truncate,
)


@pytest.mark.parametrize(
    "amount, expected",
    [
        (Decimal("10000"), "€10.000,00"),
        (Decimal("1234567.891"), "€1.234.567,89"),
        (Decimal("0.005"), "€0,01"),
        (0, "€0,00"),
        (Decimal("-5.5"), "-€5,50"),
        (None, "€0,00"),
        ("999", "€999,00"),
    ],
)
def test_format_euro_uses_italian_separators(amount, expected):
    assert format_euro(amount) == expected


def test_quantize_money_rounds_half_up():
    assert quantize_money(Decimal("2.345")) == Decimal("2.35")
    assert quantize_money(Decimal("2.344")) == Decimal("2.34")


def test_to_decimal_treats_garbage_as_zero():
    assert to_decimal("abc") == Decimal("0")
    assert to_decimal("  ") == Decimal("0")
    assert to_decimal(3) == Decimal("3")


def test_format_date():
    assert format_date(date(2024, 12, 31)) == "31 Dec 2024"
    assert format_date(None) == ""


def test_calculate_age_counts_birthday():
    dob = date(2000, 6, 15)
    assert calculate_age(dob, today=date(2024, 6, 14)) == 23
    assert calculate_age(dob, today=date(2024, 6, 15)) == 24
    assert calculate_age(None) is None


def test_days_ago_label():
    now = datetime(2024, 5, 10, 12, 0)
    assert days_ago_label(datetime(2024, 5, 10, 8, 0), now) == "Today"
    assert days_ago_label(datetime(2024, 5, 9, 11, 0), now) == "1 day ago"
    assert days_ago_label(datetime(2024, 5, 1, 12, 0), now) == "9 days ago"
    assert days_ago_label(None, now) == ""


def test_truncate_appends_ellipsis_only_when_cut():
    assert truncate("short", 10) == "short"
    assert truncate("x" * 60, 50) == "x" * 50 + "..."
    assert truncate(None) == ""
