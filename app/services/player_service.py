"""Player and prospect service.

Loads the owner-scoped player list (with current contract and team), filters
it in memory, and handles create/edit/delete plus prospect conversion.
Routes should be thin wrappers around these functions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fields import DealStage, PlayerDealStatus, Position
from app.schemas.contacts import Contact
from app.schemas.contracts import Contract, Payment
from app.schemas.deals import DealNote, TeamDeal
from app.schemas.players import Player, Prospect
from app.schemas.reference import Team
from app.schemas.reminders import Reminder
from app.services.errors import NotFoundError

logger = logging.getLogger(__name__)

ACTIVE_DEAL_STAGES = (DealStage.ongoing, DealStage.sent)


@dataclass
class PlayerRow:
    """Player with denormalized contract and pipeline data for list views."""

    player: Player
    contract_end_date: date | None = None
    team_name: str | None = None
    active_deals: int = 0


@dataclass
class PlayerFormData:
    """Raw form data from request (all strings)."""

    first_name: str
    last_name: str
    date_of_birth: str | None = None
    position: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass
class ParsedPlayerData:
    """Validated player identity ready for DB operations."""

    first_name: str
    last_name: str
    date_of_birth: date | None = None
    position: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass
class ProspectFormData:
    first_name: str
    last_name: str
    email: str | None = None
    phone: str | None = None
    notes: str | None = None


def _clean_str(val: str | None) -> str | None:
    """Clean optional string field, returning None for empty strings."""
    if val and val.strip():
        return val.strip()
    return None


def parse_player_form(data: PlayerFormData) -> ParsedPlayerData | str:
    """Parse and validate player form data.

    Returns:
        ParsedPlayerData if parsing succeeds, error message string if it fails
    """
    if not data.first_name or not data.first_name.strip():
        return "First name is required."
    if not data.last_name or not data.last_name.strip():
        return "Last name is required."

    parsed_dob: date | None = None
    if data.date_of_birth and data.date_of_birth.strip():
        try:
            parsed_dob = date.fromisoformat(data.date_of_birth.strip())
        except ValueError:
            return "Invalid date of birth. Use YYYY-MM-DD."
        if parsed_dob > date.today():
            return "Date of birth cannot be in the future."

    position = _clean_str(data.position)
    if position is not None:
        position = position.upper()
        if position not in {p.value for p in Position}:
            return f"Unknown position: {position}"

    return ParsedPlayerData(
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
        date_of_birth=parsed_dob,
        position=position,
        email=_clean_str(data.email),
        phone=_clean_str(data.phone),
    )


def validate_prospect_form(data: ProspectFormData) -> str | None:
    if not data.first_name or not data.first_name.strip():
        return "First name is required."
    if not data.last_name or not data.last_name.strip():
        return "Last name is required."
    return None


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------


async def fetch_owned_player(db: AsyncSession, user_id: int, player_id: int) -> Player:
    """Owned-player query; the caller owns the transaction."""
    result = await db.execute(
        select(Player).where(
            Player.id == player_id,  # type: ignore[arg-type]
            Player.user_id == user_id,  # type: ignore[arg-type]
        )
    )
    player = result.scalar_one_or_none()
    if player is None:
        raise NotFoundError("player", player_id)
    return player


async def fetch_player_rows(db: AsyncSession, user_id: int) -> list[PlayerRow]:
    result = await db.execute(
        select(Player, Contract.contract_end_date, Team.name)  # type: ignore[call-overload]
        .outerjoin(Contract, Contract.id == Player.current_contract_id)
        .outerjoin(Team, Team.id == Contract.team_id)
        .where(Player.user_id == user_id)
        .order_by(Player.created_at.desc(), Player.id.desc())
    )
    rows = [
        PlayerRow(player=player, contract_end_date=end_date, team_name=team_name)
        for player, end_date, team_name in result.all()
    ]

    counts_result = await db.execute(
        select(TeamDeal.player_id, func.count())  # type: ignore[call-overload]
        .where(
            TeamDeal.user_id == user_id,
            TeamDeal.deal_stage.in_(ACTIVE_DEAL_STAGES),  # type: ignore[attr-defined]
        )
        .group_by(TeamDeal.player_id)
    )
    counts = {player_id: count for player_id, count in counts_result.all()}
    for row in rows:
        row.active_deals = counts.get(row.player.id, 0)
    return rows


async def load_players(db: AsyncSession, user_id: int) -> list[PlayerRow]:
    """Return the agent's players, newest first, with contract/team/deal data."""
    async with db.begin():
        return await fetch_player_rows(db, user_id)


async def load_prospects(
    db: AsyncSession, user_id: int, include_converted: bool = False
) -> list[Prospect]:
    query = select(Prospect).where(Prospect.user_id == user_id)  # type: ignore[arg-type]
    if not include_converted:
        query = query.where(Prospect.is_converted.is_(False))  # type: ignore[attr-defined]
    query = query.order_by(Prospect.created_at.desc(), Prospect.id.desc())  # type: ignore[attr-defined]
    async with db.begin():
        result = await db.execute(query)
        return list(result.scalars().all())


async def get_player(db: AsyncSession, user_id: int, player_id: int) -> Player:
    """Fetch one owned player or raise NotFoundError."""
    async with db.begin():
        return await fetch_owned_player(db, user_id, player_id)


async def get_prospect(db: AsyncSession, user_id: int, prospect_id: int) -> Prospect:
    async with db.begin():
        result = await db.execute(
            select(Prospect).where(
                Prospect.id == prospect_id,  # type: ignore[arg-type]
                Prospect.user_id == user_id,  # type: ignore[arg-type]
            )
        )
        prospect = result.scalar_one_or_none()
    if prospect is None:
        raise NotFoundError("prospect", prospect_id)
    return prospect


def filter_players(
    rows: list[PlayerRow],
    search: str | None = None,
    position: str | None = None,
    status: str | None = None,
) -> list[PlayerRow]:
    """Substring search on name/e-mail plus exact position and status filters."""
    needle = (search or "").strip().casefold()
    filtered: list[PlayerRow] = []
    for row in rows:
        player = row.player
        if needle:
            haystack = " ".join(
                [player.first_name, player.last_name, player.email or ""]
            ).casefold()
            if needle not in haystack:
                continue
        if position and player.position != position:
            continue
        if status and player.player_deal_status.value != status:
            continue
        filtered.append(row)
    return filtered


def filter_prospects(prospects: list[Prospect], search: str | None = None) -> list[Prospect]:
    needle = (search or "").strip().casefold()
    if not needle:
        return list(prospects)
    return [
        p
        for p in prospects
        if needle in " ".join([p.first_name, p.last_name, p.email or ""]).casefold()
    ]


def count_by_status(players: list[Player]) -> dict[str, int]:
    counts = {status.value: 0 for status in PlayerDealStatus}
    for player in players:
        counts[player.player_deal_status.value] += 1
    return counts


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def _linked_contact_name(player: Player) -> str:
    return player.full_name


async def create_player(
    db: AsyncSession, user_id: int, data: ParsedPlayerData
) -> Player:
    """Insert a new player (always starting as free agent) and its linked contact."""
    async with db.begin():
        player = await _insert_player(db, user_id, data)
    logger.info("Created player id=%s for user id=%s", player.id, user_id)
    return player


async def _insert_player(db: AsyncSession, user_id: int, data: ParsedPlayerData) -> Player:
    now = datetime.utcnow()
    player = Player(
        user_id=user_id,
        first_name=data.first_name,
        last_name=data.last_name,
        date_of_birth=data.date_of_birth,
        position=data.position,
        email=data.email,
        phone=data.phone,
        player_deal_status=PlayerDealStatus.free_agent,
        created_at=now,
        updated_at=now,
    )
    db.add(player)
    await db.flush()
    db.add(
        Contact(
            user_id=user_id,
            name=_linked_contact_name(player),
            email=player.email,
            phone=player.phone,
            player_id=player.id,
            created_at=now,
            updated_at=now,
        )
    )
    await db.flush()
    return player


async def update_player(
    db: AsyncSession, user_id: int, player_id: int, data: ParsedPlayerData
) -> Player:
    """Update identity/contact fields. Deal status is never touched here."""
    async with db.begin():
        player = await fetch_owned_player(db, user_id, player_id)
        now = datetime.utcnow()
        player.first_name = data.first_name
        player.last_name = data.last_name
        player.date_of_birth = data.date_of_birth
        player.position = data.position
        player.email = data.email
        player.phone = data.phone
        player.updated_at = now
        await db.execute(
            update(Contact)
            .where(
                Contact.player_id == player_id,  # type: ignore[arg-type]
                Contact.user_id == user_id,  # type: ignore[arg-type]
            )
            .values(
                name=_linked_contact_name(player),
                email=player.email,
                phone=player.phone,
                updated_at=now,
            )
        )
    logger.info("Updated player id=%s", player_id)
    return player


async def delete_player(db: AsyncSession, user_id: int, player_id: int) -> None:
    """Delete a player with their pipeline, contracts and payments.

    Reminders outlive their links and are only detached.
    """
    async with db.begin():
        player = await fetch_owned_player(db, user_id, player_id)

        deal_ids = select(TeamDeal.id).where(TeamDeal.player_id == player_id)  # type: ignore[call-overload]
        contract_ids = select(Contract.id).where(Contract.player_id == player_id)  # type: ignore[call-overload]

        await db.execute(
            update(Reminder)
            .where(Reminder.player_id == player_id)  # type: ignore[arg-type]
            .values(player_id=None)
        )
        await db.execute(
            update(Reminder)
            .where(Reminder.team_deal_id.in_(deal_ids))  # type: ignore[union-attr]
            .values(team_deal_id=None)
        )
        await db.execute(
            update(Reminder)
            .where(Reminder.contract_id.in_(contract_ids))  # type: ignore[union-attr]
            .values(contract_id=None)
        )
        await db.execute(
            update(Prospect)
            .where(Prospect.converted_player_id == player_id)  # type: ignore[arg-type]
            .values(converted_player_id=None)
        )
        await db.execute(
            delete(DealNote).where(DealNote.team_deal_id.in_(deal_ids))  # type: ignore[attr-defined]
        )
        await db.execute(
            delete(Payment).where(Payment.contract_id.in_(contract_ids))  # type: ignore[attr-defined]
        )
        await db.execute(
            delete(Contract).where(Contract.player_id == player_id)  # type: ignore[arg-type]
        )
        await db.execute(
            delete(TeamDeal).where(TeamDeal.player_id == player_id)  # type: ignore[arg-type]
        )
        await db.execute(
            delete(Contact).where(Contact.player_id == player_id)  # type: ignore[arg-type]
        )
        await db.delete(player)
    logger.info("Deleted player id=%s for user id=%s", player_id, user_id)


async def create_prospect(
    db: AsyncSession, user_id: int, data: ProspectFormData
) -> Prospect:
    prospect = Prospect(
        user_id=user_id,
        first_name=data.first_name.strip(),
        last_name=data.last_name.strip(),
        email=_clean_str(data.email),
        phone=_clean_str(data.phone),
        notes=_clean_str(data.notes),
        created_at=datetime.utcnow(),
    )
    async with db.begin():
        db.add(prospect)
        await db.flush()
    logger.info("Created prospect id=%s for user id=%s", prospect.id, user_id)
    return prospect


async def convert_prospect(
    db: AsyncSession, user_id: int, prospect_id: int
) -> Player:
    """Copy a prospect into a new free-agent Player and flag the prospect.

    The prospect row is kept (flagged ``is_converted``) with a back-reference
    to the player created from it.
    """
    async with db.begin():
        result = await db.execute(
            select(Prospect).where(
                Prospect.id == prospect_id,  # type: ignore[arg-type]
                Prospect.user_id == user_id,  # type: ignore[arg-type]
            )
        )
        prospect = result.scalar_one_or_none()
        if prospect is None:
            raise NotFoundError("prospect", prospect_id)
        if prospect.is_converted:
            raise NotFoundError("prospect", prospect_id)

        player = await _insert_player(
            db,
            user_id,
            ParsedPlayerData(
                first_name=prospect.first_name,
                last_name=prospect.last_name,
                email=prospect.email,
                phone=prospect.phone,
            ),
        )
        prospect.is_converted = True
        prospect.converted_player_id = player.id
    logger.info("Converted prospect id=%s into player id=%s", prospect_id, player.id)
    return player


async def delete_prospect(db: AsyncSession, user_id: int, prospect_id: int) -> None:
    async with db.begin():
        result = await db.execute(
            delete(Prospect).where(
                Prospect.id == prospect_id,  # type: ignore[arg-type]
                Prospect.user_id == user_id,  # type: ignore[arg-type]
            )
        )
        if result.rowcount == 0:
            raise NotFoundError("prospect", prospect_id)
    logger.info("Deleted prospect id=%s", prospect_id)
