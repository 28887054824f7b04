"""Players and prospects pages.

Routes are thin wrappers; business logic lives in player_service.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from app.models.fields import PlayerDealStatus, Position
from app.routes.helpers import base_context, redirect_to, require_user
from app.schemas.auth import AuthUser
from app.schemas.players import Player
from app.services.contract_manager import load_player_contracts
from app.services.player_service import (
    PlayerFormData,
    ProspectFormData,
    convert_prospect as svc_convert_prospect,
    count_by_status,
    create_player as svc_create_player,
    create_prospect as svc_create_prospect,
    delete_player as svc_delete_player,
    delete_prospect as svc_delete_prospect,
    filter_players,
    filter_prospects,
    get_player,
    get_prospect,
    load_players,
    load_prospects,
    parse_player_form,
    update_player as svc_update_player,
    validate_prospect_form,
)
from app.utils.db_async import get_session

router = APIRouter(prefix="/players", tags=["players"])

TABS = ("players", "prospects")

# Success messages for flash-style notifications
SUCCESS_MESSAGES = {
    "created": "Player created successfully.",
    "updated": "Player updated successfully.",
    "deleted": "Player deleted successfully.",
    "prospect_created": "Prospect added successfully.",
    "prospect_deleted": "Prospect deleted successfully.",
    "converted": "Prospect converted to player.",
}


def _render_player_form(
    request: Request,
    user: AuthUser,
    player: Player | None,
    form: PlayerFormData | None,
    error: str | None,
) -> Response:
    """Render create/edit form, echoing submitted values on error."""
    return request.app.state.templates.TemplateResponse(
        "players/form.html",
        base_context(
            request,
            user=user,
            player=player,
            form=form,
            positions=list(Position),
            error=error,
            active_nav="players",
        ),
    )


@router.get("", response_class=HTMLResponse)
async def list_players(
    request: Request,
    tab: str = Query(default="players"),
    q: str | None = Query(default=None),
    position: str | None = Query(default=None),
    status: str | None = Query(default=None),
    success: str | None = Query(default=None),
    error: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Players under management and prospects, with search and filters."""
    redirect, user = await require_user(request, db, next_path="/players")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    if tab not in TABS:
        tab = "players"

    rows = await load_players(db, user.id)
    prospects = await load_prospects(db, user.id)

    return request.app.state.templates.TemplateResponse(
        "players/index.html",
        base_context(
            request,
            user=user,
            tab=tab,
            rows=filter_players(rows, q, position or None, status or None),
            prospects=filter_prospects(prospects, q),
            player_count=len(rows),
            prospect_count=len(prospects),
            status_counts=count_by_status([row.player for row in rows]),
            positions=list(Position),
            statuses=list(PlayerDealStatus),
            q=q,
            position=position,
            status=status,
            success=SUCCESS_MESSAGES.get(success, success) if success else None,
            error=error,
            active_nav="players",
        ),
    )


@router.get("/new", response_class=HTMLResponse)
async def new_player(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Display the create player form."""
    redirect, user = await require_user(request, db, next_path="/players/new")
    if redirect:
        return redirect
    assert user is not None

    return _render_player_form(request, user, None, None, None)


@router.post("", response_class=HTMLResponse)
async def create_player(
    request: Request,
    first_name: str = Form(default=""),
    last_name: str = Form(default=""),
    date_of_birth: str | None = Form(default=None),
    position: str | None = Form(default=None),
    email: str | None = Form(default=None),
    phone: str | None = Form(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Create a new player (always starts as a free agent)."""
    redirect, user = await require_user(request, db, next_path="/players/new")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    form = PlayerFormData(
        first_name=first_name,
        last_name=last_name,
        date_of_birth=date_of_birth,
        position=position,
        email=email,
        phone=phone,
    )
    parsed = parse_player_form(form)
    if isinstance(parsed, str):
        return _render_player_form(request, user, None, form, parsed)

    await svc_create_player(db, user.id, parsed)
    return redirect_to("/players?success=created")


@router.get("/prospects/new", response_class=HTMLResponse)
async def new_prospect(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Display the add prospect form."""
    redirect, user = await require_user(request, db, next_path="/players/prospects/new")
    if redirect:
        return redirect
    assert user is not None

    return request.app.state.templates.TemplateResponse(
        "players/prospect_form.html",
        base_context(request, user=user, form=None, error=None, active_nav="players"),
    )


@router.post("/prospects", response_class=HTMLResponse)
async def create_prospect(
    request: Request,
    first_name: str = Form(default=""),
    last_name: str = Form(default=""),
    email: str | None = Form(default=None),
    phone: str | None = Form(default=None),
    notes: str | None = Form(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Add a prospect to the scouting list."""
    redirect, user = await require_user(request, db, next_path="/players/prospects/new")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    form = ProspectFormData(
        first_name=first_name, last_name=last_name, email=email, phone=phone, notes=notes
    )
    if error := validate_prospect_form(form):
        return request.app.state.templates.TemplateResponse(
            "players/prospect_form.html",
            base_context(request, user=user, form=form, error=error, active_nav="players"),
        )

    await svc_create_prospect(db, user.id, form)
    return redirect_to("/players?tab=prospects&success=prospect_created")


@router.get("/prospects/{prospect_id}", response_class=HTMLResponse)
async def prospect_detail(
    request: Request,
    prospect_id: int,
    db: AsyncSession = Depends(get_session),
) -> Response:
    redirect, user = await require_user(
        request, db, next_path=f"/players/prospects/{prospect_id}"
    )
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    prospect = await get_prospect(db, user.id, prospect_id)
    return request.app.state.templates.TemplateResponse(
        "players/prospect_detail.html",
        base_context(request, user=user, prospect=prospect, active_nav="players"),
    )


@router.post("/prospects/{prospect_id}/convert", response_class=HTMLResponse)
async def convert_prospect(
    request: Request,
    prospect_id: int,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Turn a prospect into a player under management."""
    redirect, user = await require_user(
        request, db, next_path=f"/players/prospects/{prospect_id}"
    )
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    player = await svc_convert_prospect(db, user.id, prospect_id)
    return redirect_to(f"/players/{player.id}?success=converted")


@router.post("/prospects/{prospect_id}/delete", response_class=HTMLResponse)
async def delete_prospect(
    request: Request,
    prospect_id: int,
    db: AsyncSession = Depends(get_session),
) -> Response:
    redirect, user = await require_user(request, db, next_path="/players?tab=prospects")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    await svc_delete_prospect(db, user.id, prospect_id)
    return redirect_to("/players?tab=prospects&success=prospect_deleted")


@router.get("/{player_id}", response_class=HTMLResponse)
async def player_detail(
    request: Request,
    player_id: int,
    success: str | None = Query(default=None),
    error: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Player profile with current contract and contract history."""
    redirect, user = await require_user(request, db, next_path=f"/players/{player_id}")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    player = await get_player(db, user.id, player_id)
    current, history = await load_player_contracts(db, user.id, player_id)
    return request.app.state.templates.TemplateResponse(
        "players/detail.html",
        base_context(
            request,
            user=user,
            player=player,
            current_contract=current,
            history=history,
            success=SUCCESS_MESSAGES.get(success, success) if success else None,
            error=error,
            active_nav="players",
        ),
    )


@router.get("/{player_id}/edit", response_class=HTMLResponse)
async def edit_player(
    request: Request,
    player_id: int,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Display the edit player form."""
    redirect, user = await require_user(request, db, next_path=f"/players/{player_id}/edit")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    player = await get_player(db, user.id, player_id)
    return _render_player_form(request, user, player, None, None)


@router.post("/{player_id}", response_class=HTMLResponse)
async def update_player(
    request: Request,
    player_id: int,
    first_name: str = Form(default=""),
    last_name: str = Form(default=""),
    date_of_birth: str | None = Form(default=None),
    position: str | None = Form(default=None),
    email: str | None = Form(default=None),
    phone: str | None = Form(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Update identity and contact fields (status is managed on the deals board)."""
    redirect, user = await require_user(request, db, next_path=f"/players/{player_id}/edit")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    form = PlayerFormData(
        first_name=first_name,
        last_name=last_name,
        date_of_birth=date_of_birth,
        position=position,
        email=email,
        phone=phone,
    )
    parsed = parse_player_form(form)
    if isinstance(parsed, str):
        player = await get_player(db, user.id, player_id)
        return _render_player_form(request, user, player, form, parsed)

    await svc_update_player(db, user.id, player_id, parsed)
    return redirect_to(f"/players/{player_id}?success=updated")


@router.post("/{player_id}/delete", response_class=HTMLResponse)
async def delete_player(
    request: Request,
    player_id: int,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Delete a player together with their deals, contracts and payments."""
    redirect, user = await require_user(request, db, next_path=f"/players/{player_id}")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    await svc_delete_player(db, user.id, player_id)
    return redirect_to("/players?success=deleted")
