"""Commission payments page."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from app.models.fields import PaymentStatus
from app.routes.helpers import base_context, parse_optional_int, redirect_to, require_user
from app.services.errors import ValidationError
from app.services.payment_service import (
    compute_stats,
    filter_payments,
    load_payments,
    mark_paid as svc_mark_paid,
    payment_years,
)
from app.utils.db_async import get_session

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("", response_class=HTMLResponse)
async def list_payments(
    request: Request,
    status: str | None = Query(default=None),
    year: str | None = Query(default=None),
    success: str | None = Query(default=None),
    error: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Payments with year-to-date stats and status/year filters."""
    redirect, user = await require_user(request, db, next_path="/payments")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    today = date.today()
    rows = await load_payments(db, user.id, today)
    year_int = parse_optional_int(year)

    return request.app.state.templates.TemplateResponse(
        "payments/index.html",
        base_context(
            request,
            user=user,
            rows=filter_payments(rows, status or None, year_int),
            stats=compute_stats(rows, today),
            years=payment_years(rows),
            statuses=list(PaymentStatus),
            status=status,
            year=year_int,
            success=success,
            error=error,
            active_nav="payments",
        ),
    )


@router.post("/{payment_id}/mark-paid", response_class=HTMLResponse)
async def mark_paid(
    request: Request,
    payment_id: int,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Record receipt of a commission payment today."""
    redirect, user = await require_user(request, db, next_path="/payments")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    try:
        await svc_mark_paid(db, user.id, payment_id)
    except ValidationError as exc:
        return redirect_to("/payments", error=str(exc))
    return redirect_to("/payments", success="Payment marked as paid.")
