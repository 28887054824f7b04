"""Contacts address book.

Contacts linked to a player are maintained by the player service and are
read-only here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fields import CONTACT_ROLES
from app.schemas.contacts import Contact
from app.schemas.reference import Team
from app.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class ContactRow:
    contact: Contact
    team_name: str | None = None

    @property
    def is_player(self) -> bool:
        return self.contact.player_id is not None


@dataclass
class ContactFormData:
    """Raw form data from request (all strings)."""

    name: str
    role: str | None = None
    email: str | None = None
    phone: str | None = None
    team_id: str | None = None
    notes: str | None = None


@dataclass
class ParsedContactData:
    name: str
    role: str | None = None
    email: str | None = None
    phone: str | None = None
    team_id: int | None = None
    notes: str | None = None


def _clean_str(val: str | None) -> str | None:
    """Clean optional string field, returning None for empty strings."""
    if val and val.strip():
        return val.strip()
    return None


def parse_contact_form(data: ContactFormData) -> ParsedContactData | str:
    """Parse and validate contact form data.

    Returns:
        ParsedContactData if parsing succeeds, error message string if it fails
    """
    name = _clean_str(data.name)
    if name is None:
        return "Name is required."

    role = _clean_str(data.role)
    if role is not None and role not in CONTACT_ROLES:
        return f"Unknown role: {role}"

    team_id: int | None = None
    if data.team_id and data.team_id.strip():
        try:
            team_id = int(data.team_id.strip())
        except ValueError:
            return "Invalid team."

    return ParsedContactData(
        name=name,
        role=role,
        email=_clean_str(data.email),
        phone=_clean_str(data.phone),
        team_id=team_id,
        notes=_clean_str(data.notes),
    )


async def load_contacts(db: AsyncSession, user_id: int) -> list[ContactRow]:
    """All of the agent's contacts ordered by name."""
    async with db.begin():
        result = await db.execute(
            select(Contact, Team.name)  # type: ignore[call-overload]
            .outerjoin(Team, Team.id == Contact.team_id)
            .where(Contact.user_id == user_id)
            .order_by(Contact.name, Contact.id)
        )
        rows = result.all()
    return [ContactRow(contact=contact, team_name=team_name) for contact, team_name in rows]


def filter_contacts(
    rows: list[ContactRow],
    search: str | None = None,
    role: str | None = None,
    team_id: int | None = None,
) -> list[ContactRow]:
    """Substring search on name/e-mail/phone plus exact role and team filters."""
    needle = (search or "").strip().casefold()
    filtered: list[ContactRow] = []
    for row in rows:
        contact = row.contact
        if needle:
            matches = (
                needle in contact.name.casefold()
                or needle in (contact.email or "").casefold()
                or needle in (contact.phone or "")
            )
            if not matches:
                continue
        if role and contact.role != role:
            continue
        if team_id is not None and contact.team_id != team_id:
            continue
        filtered.append(row)
    return filtered


async def _get_editable_contact(db: AsyncSession, user_id: int, contact_id: int) -> Contact:
    contact = await db.get(Contact, contact_id)
    if contact is None or contact.user_id != user_id:
        raise NotFoundError("contact", contact_id)
    if contact.player_id is not None:
        raise ValidationError("Player contacts are synced from the player record and cannot be edited here.")
    return contact


async def get_contact(db: AsyncSession, user_id: int, contact_id: int) -> Contact:
    async with db.begin():
        contact = await db.get(Contact, contact_id)
    if contact is None or contact.user_id != user_id:
        raise NotFoundError("contact", contact_id)
    return contact


async def _check_team(db: AsyncSession, team_id: int | None) -> None:
    if team_id is not None and await db.get(Team, team_id) is None:
        raise ValidationError("Invalid team.")


async def create_contact(db: AsyncSession, user_id: int, data: ParsedContactData) -> Contact:
    async with db.begin():
        await _check_team(db, data.team_id)
        now = datetime.utcnow()
        contact = Contact(
            user_id=user_id,
            name=data.name,
            role=data.role,
            email=data.email,
            phone=data.phone,
            team_id=data.team_id,
            notes=data.notes,
            created_at=now,
            updated_at=now,
        )
        db.add(contact)
        await db.flush()
    logger.info("Created contact id=%s for user id=%s", contact.id, user_id)
    return contact


async def update_contact(
    db: AsyncSession, user_id: int, contact_id: int, data: ParsedContactData
) -> Contact:
    async with db.begin():
        contact = await _get_editable_contact(db, user_id, contact_id)
        await _check_team(db, data.team_id)
        contact.name = data.name
        contact.role = data.role
        contact.email = data.email
        contact.phone = data.phone
        contact.team_id = data.team_id
        contact.notes = data.notes
        contact.updated_at = datetime.utcnow()
    logger.info("Updated contact id=%s", contact_id)
    return contact


async def delete_contact(db: AsyncSession, user_id: int, contact_id: int) -> None:
    async with db.begin():
        contact = await _get_editable_contact(db, user_id, contact_id)
        await db.delete(contact)
    logger.info("Deleted contact id=%s", contact_id)
