"""Commission payments: loading, stats, filters and marking as paid.

Payments are only ever created by the contract workflow; this module reads
them and records receipt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fields import PaymentStatus
from app.schemas.contracts import Contract, Payment
from app.schemas.players import Player
from app.schemas.reference import Team
from app.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class PaymentRow:
    payment: Payment
    player_name: str
    team_name: str
    status: PaymentStatus

    @property
    def can_mark_paid(self) -> bool:
        return self.status is not PaymentStatus.paid


@dataclass
class PaymentStats:
    received_ytd: Decimal
    pending_total: Decimal
    count: int


def effective_status(payment: Payment, today: date) -> PaymentStatus:
    """Paid stays paid; a pending payment past its due date reads as overdue."""
    if payment.status is PaymentStatus.paid:
        return PaymentStatus.paid
    if payment.status is PaymentStatus.overdue or payment.due_date < today:
        return PaymentStatus.overdue
    return PaymentStatus.pending


async def load_payments(db: AsyncSession, user_id: int, today: date | None = None) -> list[PaymentRow]:
    """All of the agent's payments, latest due date first."""
    today = today or date.today()
    async with db.begin():
        result = await db.execute(
            select(Payment, Player.first_name, Player.last_name, Team.name)  # type: ignore[call-overload]
            .join(Contract, Contract.id == Payment.contract_id)
            .join(Player, Player.id == Contract.player_id)
            .join(Team, Team.id == Contract.team_id)
            .where(Payment.user_id == user_id)
            .order_by(Payment.due_date.desc(), Payment.id.desc())
        )
        rows = result.all()
    return [
        PaymentRow(
            payment=payment,
            player_name=f"{first} {last}",
            team_name=team_name,
            status=effective_status(payment, today),
        )
        for payment, first, last, team_name in rows
    ]


def compute_stats(rows: list[PaymentRow], today: date) -> PaymentStats:
    """Received this calendar year, outstanding total and row count."""
    received = sum(
        (
            row.payment.amount
            for row in rows
            if row.payment.paid_date is not None and row.payment.paid_date.year == today.year
        ),
        Decimal("0"),
    )
    pending = sum(
        (row.payment.amount for row in rows if row.status is not PaymentStatus.paid),
        Decimal("0"),
    )
    return PaymentStats(received_ytd=received, pending_total=pending, count=len(rows))


def payment_years(rows: list[PaymentRow]) -> list[int]:
    years: set[int] = set()
    for row in rows:
        years.add(row.payment.due_date.year)
        if row.payment.paid_date is not None:
            years.add(row.payment.paid_date.year)
    return sorted(years, reverse=True)


def filter_payments(
    rows: list[PaymentRow],
    status: str | None = None,
    year: int | None = None,
) -> list[PaymentRow]:
    """Exact-match filters on effective status and due-date year."""
    filtered = rows
    if status:
        filtered = [row for row in filtered if row.status.value == status]
    if year is not None:
        filtered = [row for row in filtered if row.payment.due_date.year == year]
    return filtered


async def mark_paid(
    db: AsyncSession, user_id: int, payment_id: int, today: date | None = None
) -> Payment:
    """Record receipt of a payment today."""
    async with db.begin():
        payment = await db.get(Payment, payment_id)
        if payment is None or payment.user_id != user_id:
            raise NotFoundError("payment", payment_id)
        if payment.status is PaymentStatus.paid:
            raise ValidationError("This payment is already marked as paid.")
        payment.status = PaymentStatus.paid
        payment.paid_date = today or date.today()
    logger.info("Payment id=%s marked as paid", payment_id)
    return payment
