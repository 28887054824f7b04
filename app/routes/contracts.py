"""Contracts pages: list, create/edit form and the live commission preview.

Routes are thin wrappers; the workflow lives in ``ContractManager``.
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from app.models.pipeline import ContractPreviewResponse
from app.routes.helpers import (
    base_context,
    parse_optional_int,
    redirect_to,
    require_api_user,
    require_user,
)
from app.schemas.auth import AuthUser
from app.services.contract_manager import (
    ContractForm,
    ContractFormData,
    ContractManager,
    compute_commission,
    form_defaults_from_data,
    is_contract_active,
    load_contracts,
    parse_contract_form,
    suggest_retroactive,
)
from app.services.errors import ContractManagerUnavailable, ValidationError
from app.services.pipeline_context import PipelineContext
from app.services.player_service import load_players
from app.utils.db_async import get_session
from app.utils.formatting import format_euro, to_decimal

router = APIRouter(prefix="/contracts", tags=["contracts"])


def _render_form(
    request: Request,
    user: AuthUser,
    form: ContractForm,
    error: str | None = None,
) -> Response:
    return request.app.state.templates.TemplateResponse(
        "contracts/form.html",
        base_context(
            request,
            user=user,
            form=form,
            values=form.defaults,
            error=error,
            active_nav="contracts",
        ),
    )


def _build_form_data(
    team_id: str | None,
    competition_id: str | None,
    contract_value: str | None,
    commission_percentage: str | None,
    contract_start_date: str | None,
    contract_end_date: str | None,
    notes: str | None,
    added_retroactively: str | None,
) -> ContractFormData:
    """Build ContractFormData from individual form fields."""
    return ContractFormData(
        team_id=team_id,
        competition_id=competition_id,
        contract_value=contract_value,
        commission_percentage=commission_percentage,
        contract_start_date=contract_start_date,
        contract_end_date=contract_end_date,
        notes=notes,
        added_retroactively=added_retroactively,
    )


@router.get("", response_class=HTMLResponse)
async def list_contracts(
    request: Request,
    success: str | None = Query(default=None),
    error: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Active contracts and contract history."""
    redirect, user = await require_user(request, db, next_path="/contracts")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    active, history = await load_contracts(db, user.id)
    players = await load_players(db, user.id)
    return request.app.state.templates.TemplateResponse(
        "contracts/index.html",
        base_context(
            request,
            user=user,
            active=active,
            history=history,
            players=[row.player for row in players],
            success=success,
            error=error,
            active_nav="contracts",
        ),
    )


@router.get("/preview", response_model=ContractPreviewResponse)
async def preview_contract(
    request: Request,
    contract_value: str | None = Query(default=None),
    commission_percentage: str | None = Query(default=None),
    contract_end_date: str | None = Query(default=None),
    added_retroactively: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> ContractPreviewResponse:
    """Commission and activity figures for the form, recomputed on each keystroke."""
    await require_api_user(request, db)

    value = to_decimal(contract_value)
    percentage = to_decimal(commission_percentage)
    retroactive = (added_retroactively or "").lower() in {"1", "true", "on", "yes"}
    end: date | None = None
    if contract_end_date:
        try:
            end = date.fromisoformat(contract_end_date.strip())
        except ValueError:
            end = None

    preview = ContractPreviewResponse(
        suggest_retroactive=suggest_retroactive(end, retroactive, date.today()),
    )
    if end is not None:
        preview.is_active = is_contract_active(end, retroactive, date.today())
    if value.is_finite() and percentage.is_finite():
        commission = compute_commission(value, percentage)
        preview.commission = str(commission)
        preview.commission_display = format_euro(commission)
        preview.value_display = format_euro(value)
    return preview


@router.get("/new", response_class=HTMLResponse)
async def new_contract(
    request: Request,
    player_id: str | None = Query(default=None),
    team_deal_id: str | None = Query(default=None),
    historical: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Open the contract form for a player.

    Switches to editing when the player already has an active contract,
    unless a historical entry was asked for.
    """
    next_path = request.url.path + (f"?{request.url.query}" if request.url.query else "")
    redirect, user = await require_user(request, db, next_path=next_path)
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    parsed_player_id = parse_optional_int(player_id)
    if parsed_player_id is None:
        return redirect_to("/contracts", error="Please choose a player first.")

    manager = ContractManager(db, user.id)
    deal_id = parse_optional_int(team_deal_id)
    handoff = await manager.resolve_handoff(deal_id) if deal_id is not None else None
    try:
        form = await manager.open(
            parsed_player_id, handoff=handoff, historical=historical in {"1", "true", "on"}
        )
    except ContractManagerUnavailable as exc:
        return redirect_to("/contracts", error=str(exc))
    return _render_form(request, user, form)


@router.post("", response_class=HTMLResponse)
async def create_contract(
    request: Request,
    player_id: str = Form(default=""),
    team_deal_id: str | None = Form(default=None),
    historical: str | None = Form(default=None),
    team_id: str | None = Form(default=None),
    competition_id: str | None = Form(default=None),
    contract_value: str | None = Form(default=None),
    commission_percentage: str | None = Form(default=None),
    contract_start_date: str | None = Form(default=None),
    contract_end_date: str | None = Form(default=None),
    notes: str | None = Form(default=None),
    added_retroactively: str | None = Form(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Create a contract; an active one also signs the player and books a payment."""
    redirect, user = await require_user(request, db, next_path="/contracts")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    parsed_player_id = parse_optional_int(player_id)
    if parsed_player_id is None:
        return redirect_to("/contracts", error="Please choose a player first.")

    manager = ContractManager(db, user.id)
    deal_id = parse_optional_int(team_deal_id)
    handoff = await manager.resolve_handoff(deal_id) if deal_id is not None else None
    form_data = _build_form_data(
        team_id,
        competition_id,
        contract_value,
        commission_percentage,
        contract_start_date,
        contract_end_date,
        notes,
        added_retroactively,
    )

    parsed = parse_contract_form(form_data)
    error: str | None = parsed if isinstance(parsed, str) else None
    if not isinstance(parsed, str):
        ctx = PipelineContext(user_id=user.id, handoff=handoff)
        try:
            result = await manager.create(parsed_player_id, parsed, handoff=handoff, ctx=ctx)
        except ValidationError as exc:
            error = str(exc)
        else:
            return redirect_to("/contracts", success=result.message, error=result.warning)

    try:
        form = await manager.open(
            parsed_player_id, handoff=handoff, historical=historical in {"1", "true", "on"}
        )
    except ContractManagerUnavailable as exc:
        return redirect_to("/contracts", error=str(exc))
    form.mode = "create"
    form.contract = None
    form.defaults = form_defaults_from_data(form_data)
    return _render_form(request, user, form, error)


@router.get("/{contract_id}/edit", response_class=HTMLResponse)
async def edit_contract(
    request: Request,
    contract_id: int,
    team_deal_id: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Display the edit contract form, linked to a signed deal when one is given."""
    redirect, user = await require_user(request, db, next_path=f"/contracts/{contract_id}/edit")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    manager = ContractManager(db, user.id)
    deal_id = parse_optional_int(team_deal_id)
    handoff = await manager.resolve_handoff(deal_id) if deal_id is not None else None
    form = await manager.edit_form(contract_id, handoff=handoff)
    return _render_form(request, user, form)


@router.post("/{contract_id}", response_class=HTMLResponse)
async def update_contract(
    request: Request,
    contract_id: int,
    team_deal_id: str | None = Form(default=None),
    team_id: str | None = Form(default=None),
    competition_id: str | None = Form(default=None),
    contract_value: str | None = Form(default=None),
    commission_percentage: str | None = Form(default=None),
    contract_start_date: str | None = Form(default=None),
    contract_end_date: str | None = Form(default=None),
    notes: str | None = Form(default=None),
    added_retroactively: str | None = Form(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Update a contract in place (no payment or player-status changes)."""
    redirect, user = await require_user(request, db, next_path=f"/contracts/{contract_id}/edit")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    manager = ContractManager(db, user.id)
    deal_id = parse_optional_int(team_deal_id)
    handoff = await manager.resolve_handoff(deal_id) if deal_id is not None else None
    form_data = _build_form_data(
        team_id,
        competition_id,
        contract_value,
        commission_percentage,
        contract_start_date,
        contract_end_date,
        notes,
        added_retroactively,
    )

    parsed = parse_contract_form(form_data)
    error: str | None = parsed if isinstance(parsed, str) else None
    if not isinstance(parsed, str):
        try:
            result = await manager.update(contract_id, parsed, handoff=handoff)
        except ValidationError as exc:
            error = str(exc)
        else:
            return redirect_to("/contracts", success=result.message)

    form = await manager.edit_form(contract_id, handoff=handoff)
    form.defaults = form_defaults_from_data(form_data)
    return _render_form(request, user, form, error)
