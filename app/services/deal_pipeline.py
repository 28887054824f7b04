"""Deal pipeline controller.

Two state machines share one command, ``DealPipeline.transition``:

* player status: free_agent / in_negotiation / signed, every arc allowed;
* team-deal stage: ongoing -> sent -> {signed, not_signed}, with signed and
  not_signed terminal.

Every mutation returns the collections it touched (``refetch``) and the
pipeline reloads exactly those into its ``PipelineContext``. Backend errors
are logged and turned into a message; state is re-read, never patched locally.

A deal moving into "signed" commits the stage first, then hands the deal's
team over to the contract workflow. If that hand-off fails the stage stays
signed and the caller gets an error message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from urllib.parse import urlencode

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fields import DealStage, PlayerDealStatus
from app.schemas.deals import DealNote, TeamDeal
from app.schemas.players import Player
from app.schemas.reference import Competition, Team
from app.schemas.reminders import Reminder
from app.services.board_views import DealRow
from app.services.contract_manager import ContractManager
from app.services.errors import (
    ContractManagerUnavailable,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.services.pipeline_context import ContractHandoff, PipelineContext
from app.services.player_service import fetch_owned_player, fetch_player_rows
from app.services.reference_service import fetch_team_options
from app.services.reminder_service import (
    ParsedReminderData,
    create_reminder,
    fetch_reminders,
    toggle_reminder as flip_reminder,
)

logger = logging.getLogger(__name__)


class TransitionKind(str, Enum):
    player_status = "player_status"
    deal_stage = "deal_stage"


PLAYER_STATUS_TRANSITIONS: dict[PlayerDealStatus, frozenset[PlayerDealStatus]] = {
    status: frozenset(s for s in PlayerDealStatus if s != status)
    for status in PlayerDealStatus
}

DEAL_STAGE_TRANSITIONS: dict[DealStage, frozenset[DealStage]] = {
    DealStage.ongoing: frozenset({DealStage.sent, DealStage.signed, DealStage.not_signed}),
    DealStage.sent: frozenset({DealStage.ongoing, DealStage.signed, DealStage.not_signed}),
    DealStage.signed: frozenset(),
    DealStage.not_signed: frozenset(),
}


def is_allowed(kind: TransitionKind, from_state: str, to_state: str) -> bool:
    """Look a move up in the transition table (unknown states are never allowed)."""
    try:
        if kind is TransitionKind.player_status:
            return PlayerDealStatus(to_state) in PLAYER_STATUS_TRANSITIONS[PlayerDealStatus(from_state)]
        return DealStage(to_state) in DEAL_STAGE_TRANSITIONS[DealStage(from_state)]
    except ValueError:
        return False


@dataclass
class MutationResult:
    """Outcome of one pipeline mutation."""

    refetch: tuple[str, ...] = ()
    error: str | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class TransitionResult(MutationResult):
    kind: TransitionKind = TransitionKind.deal_stage
    entity_id: int = 0
    from_state: str = ""
    to_state: str = ""
    changed: bool = False
    handoff: ContractHandoff | None = None
    redirect: str | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            "ok": self.ok,
            "kind": self.kind.value,
            "entity_id": self.entity_id,
            "from_state": self.from_state,
            "to_state": self.to_state,
            "changed": self.changed,
            "refetch": list(self.refetch),
            "error": self.error,
            "message": self.message,
            "redirect": self.redirect,
        }


@dataclass
class PlayerPipeline:
    """Loaded state for one player's deal board."""

    player: Player
    deals: list[DealRow] = field(default_factory=list)
    notes: list[DealNote] = field(default_factory=list)
    reminders: list[Reminder] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Loaders (the caller owns the transaction)
# ---------------------------------------------------------------------------


async def fetch_deal_rows(db: AsyncSession, user_id: int, player_id: int) -> list[DealRow]:
    result = await db.execute(
        select(TeamDeal, Team.name, Team.city, Team.competition_id, Competition.name)  # type: ignore[call-overload]
        .join(Team, Team.id == TeamDeal.team_id)
        .outerjoin(Competition, Competition.id == Team.competition_id)
        .where(TeamDeal.user_id == user_id, TeamDeal.player_id == player_id)
        .order_by(TeamDeal.created_at.desc(), TeamDeal.id.desc())
    )
    rows = [
        DealRow(
            deal=deal,
            team_name=team_name,
            team_city=team_city,
            competition_id=competition_id,
            competition_name=competition_name,
        )
        for deal, team_name, team_city, competition_id, competition_name in result.all()
    ]
    if not rows:
        return rows

    deal_ids = [row.deal.id for row in rows]
    counts_result = await db.execute(
        select(DealNote.team_deal_id, func.count())  # type: ignore[call-overload]
        .where(DealNote.team_deal_id.in_(deal_ids))
        .group_by(DealNote.team_deal_id)
    )
    counts = dict(counts_result.all())
    notes = await fetch_deal_notes(db, user_id, deal_ids)
    latest: dict[int, str] = {}
    for note in notes:
        latest.setdefault(note.team_deal_id, note.note_text)
    for row in rows:
        row.note_count = counts.get(row.deal.id, 0)
        row.latest_note = latest.get(row.deal.id)
    return rows


async def fetch_deal_notes(db: AsyncSession, user_id: int, deal_ids: list[int]) -> list[DealNote]:
    """Notes for the given deals, newest first."""
    if not deal_ids:
        return []
    result = await db.execute(
        select(DealNote)
        .where(
            DealNote.user_id == user_id,  # type: ignore[arg-type]
            DealNote.team_deal_id.in_(deal_ids),  # type: ignore[attr-defined]
        )
        .order_by(DealNote.created_at.desc(), DealNote.id.desc())  # type: ignore[attr-defined]
    )
    return list(result.scalars().all())


async def load_player_pipeline(db: AsyncSession, user_id: int, player_id: int) -> PlayerPipeline:
    """Load a player with their deals, notes and open deal reminders."""
    async with db.begin():
        player = await fetch_owned_player(db, user_id, player_id)
        deals = await fetch_deal_rows(db, user_id, player_id)
        deal_ids = [row.deal.id for row in deals]
        notes = await fetch_deal_notes(db, user_id, deal_ids)
        reminders = await _fetch_deal_reminders(db, user_id, deal_ids)
    return PlayerPipeline(player=player, deals=deals, notes=notes, reminders=reminders)


async def _fetch_deal_reminders(
    db: AsyncSession, user_id: int, deal_ids: list[int]
) -> list[Reminder]:
    if not deal_ids:
        return []
    return await fetch_reminders(
        db,
        user_id,
        Reminder.team_deal_id.in_(deal_ids),  # type: ignore[union-attr]
        Reminder.completed.is_(False),  # type: ignore[attr-defined]
    )


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


class DealPipeline:
    """Drives both boards for one agent inside one request."""

    def __init__(
        self,
        db: AsyncSession,
        ctx: PipelineContext,
        contract_manager: ContractManager | None = None,
    ) -> None:
        self.db = db
        self.ctx = ctx
        self.contract_manager = contract_manager

    # -- loading ------------------------------------------------------------

    async def load_board(self) -> PipelineContext:
        await self.reload(("players",))
        return self.ctx

    async def load_player(self, player_id: int) -> PipelineContext:
        """Make ``player_id`` the current player and load their pipeline."""
        pipeline = await load_player_pipeline(self.db, self.ctx.user_id, player_id)
        self.ctx.current_player = pipeline.player
        self.ctx.team_deals = pipeline.deals
        self.ctx.notes = pipeline.notes
        self.ctx.reminders = pipeline.reminders
        if not self.ctx.teams:
            async with self.db.begin():
                self.ctx.teams = await fetch_team_options(self.db)
        return self.ctx

    async def reload(self, refetch: tuple[str, ...] | list[str]) -> None:
        """Re-read exactly the named collections into the context."""
        names = set(refetch)
        if not names:
            return
        user_id = self.ctx.user_id
        async with self.db.begin():
            if "players" in names:
                self.ctx.players = await fetch_player_rows(self.db, user_id)
            player = self.ctx.current_player
            if player is not None and names & {"team_deals", "notes", "reminders"}:
                self.ctx.current_player = await fetch_owned_player(self.db, user_id, player.id)
                self.ctx.team_deals = await fetch_deal_rows(self.db, user_id, player.id)
                deal_ids = [row.deal.id for row in self.ctx.team_deals]
                self.ctx.notes = await fetch_deal_notes(self.db, user_id, deal_ids)
                self.ctx.reminders = await _fetch_deal_reminders(self.db, user_id, deal_ids)
            if "teams" in names:
                self.ctx.teams = await fetch_team_options(self.db)

    # -- transitions --------------------------------------------------------

    async def transition(
        self,
        kind: TransitionKind | str,
        entity_id: int,
        from_state: str,
        to_state: str,
    ) -> TransitionResult:
        """Apply one state move from either board.

        Raises:
            InvalidTransitionError: the move is not in the table, or the row's
                persisted state is no longer ``from_state``.
            NotFoundError: the player or deal does not belong to this agent.
        """
        kind = TransitionKind(kind)
        result = TransitionResult(
            kind=kind, entity_id=entity_id, from_state=from_state, to_state=to_state
        )
        if from_state == to_state:
            return result
        if not is_allowed(kind, from_state, to_state):
            raise InvalidTransitionError(kind.value.replace("_", " "), from_state, to_state)

        if kind is TransitionKind.player_status:
            return await self._move_player(result)
        return await self._move_deal(result)

    async def move_player(self, player_id: int, from_status: str, to_status: str) -> TransitionResult:
        return await self.transition(TransitionKind.player_status, player_id, from_status, to_status)

    async def move_deal(self, team_deal_id: int, from_stage: str, to_stage: str) -> TransitionResult:
        return await self.transition(TransitionKind.deal_stage, team_deal_id, from_stage, to_stage)

    async def _move_player(self, result: TransitionResult) -> TransitionResult:
        result.refetch = ("players",)
        try:
            async with self.db.begin():
                player = await fetch_owned_player(self.db, self.ctx.user_id, result.entity_id)
                if player.player_deal_status.value != result.from_state:
                    raise InvalidTransitionError(
                        "player status", result.from_state, result.to_state, stale=True
                    )
                player.player_deal_status = PlayerDealStatus(result.to_state)
                player.updated_at = datetime.utcnow()
            result.changed = True
            logger.info(
                "Player id=%s moved %s -> %s",
                result.entity_id,
                result.from_state,
                result.to_state,
            )
        except SQLAlchemyError:
            logger.exception("Failed to move player id=%s", result.entity_id)
            result.error = "Error updating player status. Please try again."
        await self.reload(result.refetch)
        return result

    async def _move_deal(self, result: TransitionResult) -> TransitionResult:
        result.refetch = ("team_deals", "players")
        to_stage = DealStage(result.to_state)
        try:
            async with self.db.begin():
                row = await self.db.execute(
                    select(TeamDeal, Team)  # type: ignore[call-overload]
                    .join(Team, Team.id == TeamDeal.team_id)
                    .where(
                        TeamDeal.id == result.entity_id,
                        TeamDeal.user_id == self.ctx.user_id,
                    )
                )
                found = row.one_or_none()
                if found is None:
                    raise NotFoundError("team_deal", result.entity_id)
                deal, team = found
                if deal.deal_stage.value != result.from_state:
                    raise InvalidTransitionError(
                        "deal stage", result.from_state, result.to_state, stale=True
                    )
                deal.deal_stage = to_stage
                deal.updated_at = datetime.utcnow()
                player_id = deal.player_id
            result.changed = True
            logger.info(
                "Team deal id=%s moved %s -> %s",
                result.entity_id,
                result.from_state,
                result.to_state,
            )
        except SQLAlchemyError:
            logger.exception("Failed to move team deal id=%s", result.entity_id)
            result.error = "Error updating deal. Please try again."
            await self.reload(result.refetch)
            return result

        if to_stage is DealStage.signed:
            result.handoff = ContractHandoff(
                team_deal_id=deal.id,
                team_id=team.id,
                team_name=team.name,
                competition_id=team.competition_id,
            )
            self.ctx.handoff = result.handoff
            await self._hand_off(result, player_id)

        await self.reload(result.refetch)
        return result

    async def _hand_off(self, result: TransitionResult, player_id: int) -> None:
        """Open the contract workflow for a freshly signed deal."""
        if self.contract_manager is None:
            logger.error("Deal id=%s signed but no contract manager is wired", result.entity_id)
            result.error = (
                "Contract Manager not available. The deal is marked as signed; "
                "add the contract from the Contracts page."
            )
            return
        try:
            form = await self.contract_manager.open(player_id, handoff=result.handoff)
        except ContractManagerUnavailable as exc:
            logger.error("Deal id=%s signed but the contract form failed: %s", result.entity_id, exc)
            result.error = (
                "Contract Manager not available. The deal is marked as signed; "
                "add the contract from the Contracts page."
            )
            return

        if form.is_edit and form.contract is not None:
            query = result.handoff.as_query()  # type: ignore[union-attr]
            result.redirect = f"/contracts/{form.contract.id}/edit?{urlencode(query)}"
            result.message = "Deal signed. This player already has an active contract."
        else:
            query = {"player_id": player_id, **result.handoff.as_query()}  # type: ignore[union-attr]
            result.redirect = f"/contracts/new?{urlencode(query)}"
            result.message = f"Deal with {result.handoff.team_name} signed. Add the contract."  # type: ignore[union-attr]

    # -- other mutations ----------------------------------------------------

    async def add_team_deal(self, player_id: int, team_id: int) -> MutationResult:
        """Start negotiating with a team that is not yet in the player's pipeline."""
        result = MutationResult(refetch=("team_deals", "players"))
        try:
            async with self.db.begin():
                await fetch_owned_player(self.db, self.ctx.user_id, player_id)
                team = await self.db.get(Team, team_id)
                if team is None:
                    raise ValidationError("Please select a team.")
                existing = await self.db.execute(
                    select(TeamDeal.id).where(  # type: ignore[call-overload]
                        TeamDeal.player_id == player_id,
                        TeamDeal.team_id == team_id,
                    )
                )
                if existing.first() is not None:
                    raise ValidationError(f"{team.name} is already in this player's pipeline.")
                now = datetime.utcnow()
                self.db.add(
                    TeamDeal(
                        user_id=self.ctx.user_id,
                        player_id=player_id,
                        team_id=team_id,
                        deal_stage=DealStage.ongoing,
                        created_at=now,
                        updated_at=now,
                    )
                )
            result.message = f"{team.name} added to the pipeline."
            logger.info("Added team id=%s to player id=%s pipeline", team_id, player_id)
        except IntegrityError:
            logger.exception("Duplicate team deal for player id=%s team id=%s", player_id, team_id)
            result.error = "That team is already in this player's pipeline."
        except SQLAlchemyError:
            logger.exception("Failed to create team deal for player id=%s", player_id)
            result.error = "Error creating deal. Please try again."
        await self.reload(result.refetch)
        return result

    async def add_note(self, player_id: int, team_id: int | None, text: str) -> MutationResult:
        """Append a note to the player's deal with ``team_id``."""
        if team_id is None:
            raise ValidationError("Please select a team.")
        text = (text or "").strip()
        if not text:
            raise ValidationError("Please enter a note.")

        result = MutationResult(refetch=("team_deals", "notes"))
        try:
            async with self.db.begin():
                await fetch_owned_player(self.db, self.ctx.user_id, player_id)
                found = await self.db.execute(
                    select(TeamDeal).where(
                        TeamDeal.player_id == player_id,  # type: ignore[arg-type]
                        TeamDeal.team_id == team_id,  # type: ignore[arg-type]
                        TeamDeal.user_id == self.ctx.user_id,  # type: ignore[arg-type]
                    )
                )
                deal = found.scalar_one_or_none()
                if deal is None:
                    raise ValidationError("That team is not in this player's pipeline.")
                self.db.add(
                    DealNote(
                        user_id=self.ctx.user_id,
                        team_deal_id=deal.id,
                        note_text=text,
                        deal_stage_at_time=deal.deal_stage,
                        created_at=datetime.utcnow(),
                    )
                )
            result.message = "Note added."
        except SQLAlchemyError:
            logger.exception("Failed to add note for player id=%s", player_id)
            result.error = "Error adding note. Please try again."
        await self.reload(result.refetch)
        return result

    async def add_reminder(self, player_id: int, data: ParsedReminderData) -> MutationResult:
        """Create a reminder linked to the player and optionally one of their deals."""
        data.player_id = player_id
        result = MutationResult(refetch=("reminders", "notes"))
        try:
            await create_reminder(self.db, self.ctx.user_id, data)
            result.message = "Reminder added."
        except SQLAlchemyError:
            logger.exception("Failed to add reminder for player id=%s", player_id)
            result.error = "Error saving reminder. Please try again."
        await self.reload(result.refetch)
        return result

    async def toggle_reminder(self, reminder_id: int) -> MutationResult:
        result = MutationResult(refetch=("reminders", "notes"))
        try:
            reminder = await flip_reminder(self.db, self.ctx.user_id, reminder_id)
            result.message = "Reminder completed." if reminder.completed else "Reminder reopened."
        except SQLAlchemyError:
            logger.exception("Failed to toggle reminder id=%s", reminder_id)
            result.error = "Error updating reminder. Please try again."
        await self.reload(result.refetch)
        return result
