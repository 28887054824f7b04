"""Contacts address book pages."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Form, Query, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from app.models.fields import CONTACT_ROLES
from app.routes.helpers import base_context, parse_optional_int, redirect_to, require_user
from app.schemas.auth import AuthUser
from app.schemas.contacts import Contact
from app.services.contact_service import (
    ContactFormData,
    create_contact as svc_create_contact,
    delete_contact as svc_delete_contact,
    filter_contacts,
    get_contact,
    load_contacts,
    parse_contact_form,
    update_contact as svc_update_contact,
)
from app.services.errors import ValidationError
from app.services.reference_service import TeamOption, load_teams
from app.utils.db_async import get_session

router = APIRouter(prefix="/contacts", tags=["contacts"])

# Success messages for flash-style notifications
SUCCESS_MESSAGES = {
    "created": "Contact created successfully.",
    "updated": "Contact updated successfully.",
    "deleted": "Contact deleted successfully.",
}


def _render_form(
    request: Request,
    user: AuthUser,
    teams: list[TeamOption],
    contact: Contact | None,
    form: ContactFormData | None,
    error: str | None,
) -> Response:
    """Render create/edit form, echoing submitted values on error."""
    return request.app.state.templates.TemplateResponse(
        "contacts/form.html",
        base_context(
            request,
            user=user,
            contact=contact,
            form=form,
            teams=teams,
            roles=CONTACT_ROLES,
            error=error,
            active_nav="contacts",
        ),
    )


@router.get("", response_class=HTMLResponse)
async def list_contacts(
    request: Request,
    q: str | None = Query(default=None),
    role: str | None = Query(default=None),
    team_id: str | None = Query(default=None),
    success: str | None = Query(default=None),
    error: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Contacts with search plus role and team filters."""
    redirect, user = await require_user(request, db, next_path="/contacts")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    rows = await load_contacts(db, user.id)
    teams = await load_teams(db)
    team_id_int = parse_optional_int(team_id)

    return request.app.state.templates.TemplateResponse(
        "contacts/index.html",
        base_context(
            request,
            user=user,
            rows=filter_contacts(rows, q, role or None, team_id_int),
            total=len(rows),
            teams=teams,
            roles=CONTACT_ROLES,
            q=q,
            role=role,
            team_id=team_id_int,
            success=SUCCESS_MESSAGES.get(success, success) if success else None,
            error=error,
            active_nav="contacts",
        ),
    )


@router.get("/new", response_class=HTMLResponse)
async def new_contact(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Display the create contact form."""
    redirect, user = await require_user(request, db, next_path="/contacts/new")
    if redirect:
        return redirect
    assert user is not None

    return _render_form(request, user, await load_teams(db), None, None, None)


@router.post("", response_class=HTMLResponse)
async def create_contact(
    request: Request,
    name: str = Form(default=""),
    role: str | None = Form(default=None),
    email: str | None = Form(default=None),
    phone: str | None = Form(default=None),
    team_id: str | None = Form(default=None),
    notes: str | None = Form(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Create a new contact."""
    redirect, user = await require_user(request, db, next_path="/contacts/new")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    form = ContactFormData(
        name=name, role=role, email=email, phone=phone, team_id=team_id, notes=notes
    )
    parsed = parse_contact_form(form)
    error = parsed if isinstance(parsed, str) else None
    if not isinstance(parsed, str):
        try:
            await svc_create_contact(db, user.id, parsed)
        except ValidationError as exc:
            error = str(exc)
        else:
            return redirect_to("/contacts?success=created")

    return _render_form(request, user, await load_teams(db), None, form, error)


@router.get("/{contact_id}/edit", response_class=HTMLResponse)
async def edit_contact(
    request: Request,
    contact_id: int,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Display the edit contact form."""
    redirect, user = await require_user(request, db, next_path=f"/contacts/{contact_id}/edit")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    contact = await get_contact(db, user.id, contact_id)
    if contact.player_id is not None:
        return redirect_to(
            "/contacts", error="Player contacts are edited from the player's page."
        )
    return _render_form(request, user, await load_teams(db), contact, None, None)


@router.post("/{contact_id}", response_class=HTMLResponse)
async def update_contact(
    request: Request,
    contact_id: int,
    name: str = Form(default=""),
    role: str | None = Form(default=None),
    email: str | None = Form(default=None),
    phone: str | None = Form(default=None),
    team_id: str | None = Form(default=None),
    notes: str | None = Form(default=None),
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Update a contact."""
    redirect, user = await require_user(request, db, next_path=f"/contacts/{contact_id}/edit")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    form = ContactFormData(
        name=name, role=role, email=email, phone=phone, team_id=team_id, notes=notes
    )
    parsed = parse_contact_form(form)
    error = parsed if isinstance(parsed, str) else None
    if not isinstance(parsed, str):
        try:
            await svc_update_contact(db, user.id, contact_id, parsed)
        except ValidationError as exc:
            error = str(exc)
        else:
            return redirect_to("/contacts?success=updated")

    contact = await get_contact(db, user.id, contact_id)
    return _render_form(request, user, await load_teams(db), contact, form, error)


@router.post("/{contact_id}/delete", response_class=HTMLResponse)
async def delete_contact(
    request: Request,
    contact_id: int,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Delete a contact (player-linked contacts go with their player)."""
    redirect, user = await require_user(request, db, next_path="/contacts")
    if redirect:
        return redirect
    assert user is not None and user.id is not None

    try:
        await svc_delete_contact(db, user.id, contact_id)
    except ValidationError as exc:
        return redirect_to("/contacts", error=str(exc))
    return redirect_to("/contacts?success=deleted")
