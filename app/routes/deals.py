"""Deal pipeline pages: the player board and each player's team-deal board.

Drag-and-drop posts JSON to the ``/deals/api`` endpoints; the HTML forms
post to the page routes. Both go through ``DealPipeline.transition``.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from app.models.fields import DealStage, PlayerDealStatus
from app.models.pipeline import TransitionRequest, TransitionResponse
from app.routes.helpers import (
    base_context,
    parse_optional_int,
    redirect_to,
    require_api_user,
    require_user,
)
from app.services.board_views import build_deal_board, build_notes_feed, build_player_board
from app.services.contract_manager import ContractManager
from app.services.deal_pipeline import DealPipeline, TransitionKind, TransitionResult
from app.services.errors import InvalidTransitionError, NotFoundError, ValidationError
from app.services.pipeline_context import PipelineContext
from app.services.reference_service import filter_team_options
from app.services.reminder_service import ReminderFormData, parse_reminder_form
from app.utils.db_async import get_session

router = APIRouter(prefix="/deals", tags=["deals"])


def _pipeline(db: AsyncSession, user_id: int) -> DealPipeline:
    """Per-request controller wired to the contract workflow."""
    return DealPipeline(
        db,
        PipelineContext(user_id=user_id),
        contract_manager=ContractManager(db, user_id),
    )


def _board_url(player_id: int) -> str:
    return f"/deals/players/{player_id}"


async def _run_transition(
    pipeline: DealPipeline,
    kind: TransitionKind,
    entity_id: int,
    body: TransitionRequest,
) -> TransitionResult:
    """Apply a JSON transition, mapping domain errors to HTTP status codes."""
    try:
        return await pipeline.transition(kind, entity_id, body.from_state, body.to_state)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


# ---------------------------------------------------------------------------
# Player board
# ---------------------------------------------------------------------------


@router.get("", response_class=HTMLResponse)
async def player_board(
    request: Request,
    q: str | None = Query(default=None),
    success: str | None = Query(default=None),
    error: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Players grouped into free agent / in negotiation / signed columns."""
    redirect, user = await require_user(request, db, next_path="/deals")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    ctx = await DealPipeline(db, PipelineContext(user_id=user.id)).load_board()
    return request.app.state.templates.TemplateResponse(
        "deals/board.html",
        base_context(
            request,
            user=user,
            columns=build_player_board(ctx.players, q),
            statuses=list(PlayerDealStatus),
            q=q,
            success=success,
            error=error,
            active_nav="deals",
        ),
    )


@router.post("/api/players/{player_id}/status", response_model=TransitionResponse)
async def api_move_player(
    request: Request,
    player_id: int,
    body: TransitionRequest,
    db: AsyncSession = Depends(get_session),
) -> TransitionResponse:
    """Drop a player card into another status column."""
    user = await require_api_user(request, db)
    assert user.id is not None

    result = await _run_transition(
        _pipeline(db, user.id), TransitionKind.player_status, player_id, body
    )
    return TransitionResponse(**result.as_dict())


@router.post("/players/{player_id}/status", response_class=HTMLResponse)
async def move_player(
    request: Request,
    player_id: int,
    from_state: str = Form(...),
    to_state: str = Form(...),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Form fallback for moving a player between status columns."""
    redirect, user = await require_user(request, db, next_path="/deals")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    try:
        result = await _pipeline(db, user.id).move_player(player_id, from_state, to_state)
    except InvalidTransitionError as exc:
        return redirect_to("/deals", error=str(exc))
    if result.error:
        return redirect_to("/deals", error=result.error)
    return redirect_to("/deals")


# ---------------------------------------------------------------------------
# Team-deal board
# ---------------------------------------------------------------------------


@router.get("/players/{player_id}", response_class=HTMLResponse)
async def deal_board(
    request: Request,
    player_id: int,
    team_id: str | None = Query(default=None),
    team_q: str | None = Query(default=None),
    success: str | None = Query(default=None),
    error: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """One player's deals by stage, with the notes feed and add forms."""
    redirect, user = await require_user(request, db, next_path=_board_url(player_id))
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    ctx = await DealPipeline(db, PipelineContext(user_id=user.id)).load_player(player_id)
    feed_team_id = parse_optional_int(team_id)
    in_pipeline = {row.deal.team_id for row in ctx.team_deals}

    return request.app.state.templates.TemplateResponse(
        "deals/player.html",
        base_context(
            request,
            user=user,
            player=ctx.current_player,
            deals=ctx.team_deals,
            columns=build_deal_board(ctx.team_deals, datetime.utcnow()),
            feed=build_notes_feed(ctx.notes, ctx.reminders, ctx.team_deals, feed_team_id),
            feed_team_id=feed_team_id,
            available_teams=filter_team_options(ctx.teams, team_q, in_pipeline),
            team_q=team_q,
            stages=list(DealStage),
            success=success,
            error=error,
            active_nav="deals",
        ),
    )


@router.post("/api/team-deals/{team_deal_id}/stage", response_model=TransitionResponse)
async def api_move_deal(
    request: Request,
    team_deal_id: int,
    body: TransitionRequest,
    db: AsyncSession = Depends(get_session),
) -> TransitionResponse:
    """Drop a deal card into another stage column.

    A drop into "signed" answers with a ``redirect`` to the contract form.
    """
    user = await require_api_user(request, db)
    assert user.id is not None

    result = await _run_transition(
        _pipeline(db, user.id), TransitionKind.deal_stage, team_deal_id, body
    )
    return TransitionResponse(**result.as_dict())


@router.post("/players/{player_id}/team-deals/{team_deal_id}/stage", response_class=HTMLResponse)
async def move_deal(
    request: Request,
    player_id: int,
    team_deal_id: int,
    from_state: str = Form(...),
    to_state: str = Form(...),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Form fallback for moving a deal between stages."""
    redirect, user = await require_user(request, db, next_path=_board_url(player_id))
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    try:
        result = await _pipeline(db, user.id).move_deal(team_deal_id, from_state, to_state)
    except InvalidTransitionError as exc:
        return redirect_to(_board_url(player_id), error=str(exc))
    if result.error:
        return redirect_to(_board_url(player_id), error=result.error)
    if result.redirect:
        return redirect_to(result.redirect)
    return redirect_to(_board_url(player_id))


@router.post("/players/{player_id}/teams", response_class=HTMLResponse)
async def add_team(
    request: Request,
    player_id: int,
    team_id: str = Form(default=""),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Start a deal with a team that is not yet in the pipeline."""
    redirect, user = await require_user(request, db, next_path=_board_url(player_id))
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    parsed_team_id = parse_optional_int(team_id)
    if parsed_team_id is None:
        return redirect_to(_board_url(player_id), error="Please select a team.")
    try:
        result = await _pipeline(db, user.id).add_team_deal(player_id, parsed_team_id)
    except ValidationError as exc:
        return redirect_to(_board_url(player_id), error=str(exc))
    if result.error:
        return redirect_to(_board_url(player_id), error=result.error)
    return redirect_to(_board_url(player_id), success=result.message)


@router.post("/players/{player_id}/notes", response_class=HTMLResponse)
async def add_note(
    request: Request,
    player_id: int,
    team_id: str = Form(default=""),
    note_text: str = Form(default=""),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Append a note to one of the player's deals."""
    redirect, user = await require_user(request, db, next_path=_board_url(player_id))
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    try:
        result = await _pipeline(db, user.id).add_note(
            player_id, parse_optional_int(team_id), note_text
        )
    except ValidationError as exc:
        return redirect_to(_board_url(player_id), error=str(exc))
    if result.error:
        return redirect_to(_board_url(player_id), error=result.error)
    return redirect_to(_board_url(player_id), success=result.message)


@router.post("/players/{player_id}/reminders", response_class=HTMLResponse)
async def add_reminder(
    request: Request,
    player_id: int,
    title: str = Form(default=""),
    description: str | None = Form(default=None),
    due_date: str | None = Form(default=None),
    team_deal_id: str | None = Form(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Create a reminder for the player, optionally tied to one deal."""
    redirect, user = await require_user(request, db, next_path=_board_url(player_id))
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    parsed = parse_reminder_form(
        ReminderFormData(
            title=title,
            description=description,
            due_date=due_date,
            player_id=str(player_id),
            team_deal_id=team_deal_id,
        )
    )
    if isinstance(parsed, str):
        return redirect_to(_board_url(player_id), error=parsed)
    try:
        result = await _pipeline(db, user.id).add_reminder(player_id, parsed)
    except ValidationError as exc:
        return redirect_to(_board_url(player_id), error=str(exc))
    if result.error:
        return redirect_to(_board_url(player_id), error=result.error)
    return redirect_to(_board_url(player_id), success=result.message)


@router.post("/players/{player_id}/reminders/{reminder_id}/toggle", response_class=HTMLResponse)
async def toggle_reminder(
    request: Request,
    player_id: int,
    reminder_id: int,
    db: AsyncSession = Depends(get_session),
) -> Response:
    redirect, user = await require_user(request, db, next_path=_board_url(player_id))
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    result = await _pipeline(db, user.id).toggle_reminder(reminder_id)
    if result.error:
        return redirect_to(_board_url(player_id), error=result.error)
    return redirect_to(_board_url(player_id), success=result.message)
