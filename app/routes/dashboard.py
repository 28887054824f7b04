"""Dashboard landing page."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from app.models.fields import PlayerDealStatus
from app.routes.helpers import base_context, require_user
from app.services.dashboard_service import load_dashboard
from app.utils.db_async import get_session

router = APIRouter(tags=["dashboard"])


@router.get("/", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Counts by status, pending commission and the next reminders."""
    redirect, user = await require_user(request, db, next_path="/")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    summary = await load_dashboard(db, user.id)
    return request.app.state.templates.TemplateResponse(
        "dashboard.html",
        base_context(
            request,
            user=user,
            summary=summary,
            statuses=list(PlayerDealStatus),
            active_nav="dashboard",
        ),
    )
