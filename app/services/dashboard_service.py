"""Summary figures for the dashboard landing page."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fields import PaymentStatus, PlayerDealStatus
from app.schemas.contracts import Contract, Payment
from app.schemas.players import Player, Prospect
from app.schemas.reminders import Reminder
from app.services.reminder_service import fetch_reminders, upcoming_reminders

DASHBOARD_REMINDERS = 5


@dataclass
class DashboardSummary:
    status_counts: dict[str, int] = field(default_factory=dict)
    prospects: int = 0
    active_contracts: int = 0
    pending_commission: Decimal = Decimal("0")
    upcoming: list[Reminder] = field(default_factory=list)

    @property
    def total_players(self) -> int:
        return sum(self.status_counts.values())


async def load_dashboard(
    db: AsyncSession, user_id: int, today: date | None = None
) -> DashboardSummary:
    today = today or date.today()
    async with db.begin():
        status_rows = (await db.execute(
            select(Player.player_deal_status, func.count())  # type: ignore[call-overload]
            .where(Player.user_id == user_id)
            .group_by(Player.player_deal_status)
        )).all()
        prospects = await db.scalar(
            select(func.count())
            .select_from(Prospect)
            .where(
                Prospect.user_id == user_id,  # type: ignore[arg-type]
                Prospect.is_converted.is_(False),  # type: ignore[attr-defined]
            )
        )
        active_contracts = await db.scalar(
            select(func.count())
            .select_from(Contract)
            .where(
                Contract.user_id == user_id,  # type: ignore[arg-type]
                Contract.is_active.is_(True),  # type: ignore[attr-defined]
            )
        )
        pending = await db.scalar(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(
                Payment.user_id == user_id,  # type: ignore[arg-type]
                Payment.status != PaymentStatus.paid,  # type: ignore[arg-type]
            )
        )
        reminders = await fetch_reminders(
            db, user_id, Reminder.completed.is_(False)  # type: ignore[attr-defined]
        )

    counts = {status.value: 0 for status in PlayerDealStatus}
    for status, count in status_rows:
        counts[PlayerDealStatus(status).value] = count
    return DashboardSummary(
        status_counts=counts,
        prospects=prospects or 0,
        active_contracts=active_contracts or 0,
        pending_commission=Decimal(str(pending or 0)),
        upcoming=upcoming_reminders(reminders, today, limit=DASHBOARD_REMINDERS),
    )
