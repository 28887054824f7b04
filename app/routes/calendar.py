"""Reminders calendar: month grid, reminder CRUD and iCalendar export/feed."""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from app.config import settings
from app.models.fields import ReminderTag
from app.routes.helpers import base_context, redirect_to, require_user
from app.schemas.auth import AuthUser
from app.services.auth_service import get_user_for_calendar_token, issue_calendar_token
from app.services.calendar_service import build_month_grid, parse_month_param
from app.services.errors import ValidationError
from app.services.ical_service import build_ical, export_filename
from app.services.player_service import load_players
from app.services.reminder_service import (
    ReminderFormData,
    create_reminder,
    delete_reminder as svc_delete_reminder,
    load_reminders,
    overdue_reminders,
    parse_reminder_form,
    toggle_reminder as svc_toggle_reminder,
    upcoming_reminders,
)
from app.utils.db_async import get_session

router = APIRouter(prefix="/calendar", tags=["calendar"])

ICAL_MEDIA_TYPE = "text/calendar; charset=utf-8"


def _calendar_url(month: str | None) -> str:
    return f"/calendar?month={month}" if month else "/calendar"


def _subscription_urls(request: Request, raw_token: str) -> dict[str, str]:
    """The feed URL in https and webcal form for calendar apps."""
    base = (settings.public_base_url or str(request.base_url)).rstrip("/")
    https_url = f"{base}/calendar/feed.ics?token={raw_token}"
    _scheme, _, rest = https_url.partition("://")
    return {"https": https_url, "webcal": f"webcal://{rest}"}


async def _render_calendar(
    request: Request,
    db: AsyncSession,
    user: AuthUser,
    month: str | None,
    *,
    subscription: dict[str, str] | None = None,
    success: str | None = None,
    error: str | None = None,
) -> Response:
    assert user.id is not None
    today = date.today()
    year, month_num = parse_month_param(month, today)
    reminders = await load_reminders(db, user.id)
    players = await load_players(db, user.id)

    return request.app.state.templates.TemplateResponse(
        "calendar/index.html",
        base_context(
            request,
            user=user,
            grid=build_month_grid(reminders, year, month_num, today),
            upcoming=upcoming_reminders(reminders, today),
            overdue=overdue_reminders(reminders, today),
            players=[row.player for row in players],
            tags=list(ReminderTag),
            subscription=subscription,
            success=success,
            error=error,
            active_nav="calendar",
        ),
    )


@router.get("", response_class=HTMLResponse)
async def calendar_page(
    request: Request,
    month: str | None = Query(default=None),
    success: str | None = Query(default=None),
    error: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Month grid with upcoming and overdue reminders."""
    redirect, user = await require_user(request, db, next_path="/calendar")
    if redirect:
        return redirect
    assert user is not None

    return await _render_calendar(request, db, user, month, success=success, error=error)


@router.post("/reminders", response_class=HTMLResponse)
async def add_reminder(
    request: Request,
    title: str = Form(default=""),
    description: str | None = Form(default=None),
    due_date: str | None = Form(default=None),
    tag: str | None = Form(default=None),
    player_id: str | None = Form(default=None),
    month: str | None = Form(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    redirect, user = await require_user(request, db, next_path="/calendar")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    parsed = parse_reminder_form(
        ReminderFormData(
            title=title,
            description=description,
            due_date=due_date,
            tag=tag,
            player_id=player_id,
        )
    )
    if isinstance(parsed, str):
        return redirect_to(_calendar_url(month), error=parsed)
    try:
        await create_reminder(db, user.id, parsed)
    except ValidationError as exc:
        return redirect_to(_calendar_url(month), error=str(exc))
    return redirect_to(_calendar_url(month), success="Reminder added.")


@router.post("/reminders/{reminder_id}/toggle", response_class=HTMLResponse)
async def toggle_reminder(
    request: Request,
    reminder_id: int,
    month: str | None = Form(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Mark a reminder complete, or reopen it."""
    redirect, user = await require_user(request, db, next_path="/calendar")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    reminder = await svc_toggle_reminder(db, user.id, reminder_id)
    message = "Reminder completed." if reminder.completed else "Reminder reopened."
    return redirect_to(_calendar_url(month), success=message)


@router.post("/reminders/{reminder_id}/delete", response_class=HTMLResponse)
async def delete_reminder(
    request: Request,
    reminder_id: int,
    month: str | None = Form(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    redirect, user = await require_user(request, db, next_path="/calendar")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    await svc_delete_reminder(db, user.id, reminder_id)
    return redirect_to(_calendar_url(month), success="Reminder deleted.")


@router.get("/export.ics")
async def export_calendar(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Download incomplete reminders as an .ics file."""
    redirect, user = await require_user(request, db, next_path="/calendar")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    reminders = await load_reminders(db, user.id)
    body = build_ical(reminders, datetime.utcnow(), settings.calendar_timezone)
    return Response(
        content=body,
        media_type=ICAL_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(date.today())}"'
        },
    )


@router.post("/subscription", response_class=HTMLResponse)
async def create_subscription(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Issue a fresh feed token; the URL is shown once and older ones stop working."""
    redirect, user = await require_user(request, db, next_path="/calendar")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    raw_token = await issue_calendar_token(db, user_id=user.id)
    return await _render_calendar(
        request,
        db,
        user,
        None,
        subscription=_subscription_urls(request, raw_token),
        success="Calendar subscription link created.",
    )


@router.get("/feed.ics")
async def calendar_feed(
    token: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Subscription feed for calendar apps, authorised by the token alone."""
    if not token:
        raise HTTPException(status_code=401, detail="Missing calendar token")
    user = await get_user_for_calendar_token(db, raw_token=token)
    if user is None or user.id is None:
        raise HTTPException(status_code=401, detail="Invalid calendar token")

    reminders = await load_reminders(db, user.id)
    return Response(
        content=build_ical(reminders, datetime.utcnow(), settings.calendar_timezone),
        media_type=ICAL_MEDIA_TYPE,
    )
