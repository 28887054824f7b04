"""Contract create/edit workflow.

A player has at most one active contract. Creating an active contract signs
the player and books the agent's commission as a pending payment; creating a
historical one only records it. Editing never repeats those side effects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fields import PaymentStatus, PlayerDealStatus
from app.schemas.contracts import Contract, Payment
from app.schemas.deals import TeamDeal
from app.schemas.players import Player
from app.schemas.reference import Competition, Team
from app.services.errors import ContractManagerUnavailable, NotFoundError, ValidationError
from app.services.pipeline_context import ContractHandoff, PipelineContext
from app.services.reference_service import TeamOption, fetch_competitions, fetch_team_options
from app.utils.formatting import format_euro, quantize_money

logger = logging.getLogger(__name__)

CONTRACT_REFETCH = ("contracts", "players", "payments", "team_deals")


def compute_commission(value: Decimal | int | float, percentage: Decimal | int | float) -> Decimal:
    """Agent commission: value x percentage / 100, rounded half-up to cents."""
    return quantize_money(Decimal(str(value)) * Decimal(str(percentage)) / Decimal(100))


def is_contract_active(end_date: date, retroactive: bool, today: date) -> bool:
    """A contract is active when it has not ended and was not entered after the fact."""
    return end_date >= today and not retroactive


def suggest_retroactive(end_date: date | None, retroactive: bool, today: date) -> bool:
    """Whether the form should offer to flag a past-dated contract as historical.

    Advisory only; the operator may decline.
    """
    return end_date is not None and end_date < today and not retroactive


# ---------------------------------------------------------------------------
# Form parsing
# ---------------------------------------------------------------------------


@dataclass
class ContractFormData:
    """Raw form data from request (all strings)."""

    team_id: str | None = None
    competition_id: str | None = None
    contract_value: str | None = None
    commission_percentage: str | None = None
    contract_start_date: str | None = None
    contract_end_date: str | None = None
    notes: str | None = None
    added_retroactively: str | None = None


@dataclass
class ParsedContractData:
    team_id: int
    competition_id: int
    contract_value: Decimal
    commission_percentage: Decimal
    contract_start_date: date
    contract_end_date: date
    notes: str | None = None
    added_retroactively: bool = False

    @property
    def commission(self) -> Decimal:
        return compute_commission(self.contract_value, self.commission_percentage)


def _parse_checkbox(val: str | None) -> bool:
    return val is not None and val.strip().lower() not in {"", "0", "false", "off"}


def parse_contract_form(data: ContractFormData) -> ParsedContractData | str:
    """Parse and validate contract form data.

    Returns:
        ParsedContractData if parsing succeeds, error message string if it fails
    """
    try:
        team_id = int((data.team_id or "").strip())
    except ValueError:
        return "Please select a team."
    try:
        competition_id = int((data.competition_id or "").strip())
    except ValueError:
        return "Please select a competition."

    try:
        value = Decimal((data.contract_value or "").strip())
    except InvalidOperation:
        return "Contract value must be a number."
    if not value.is_finite() or value < 0:
        return "Contract value cannot be negative."

    try:
        percentage = Decimal((data.commission_percentage or "").strip())
    except InvalidOperation:
        return "Commission percentage must be a number."
    if not percentage.is_finite() or percentage < 0 or percentage > 100:
        return "Commission percentage must be between 0 and 100."

    try:
        start = date.fromisoformat((data.contract_start_date or "").strip())
        end = date.fromisoformat((data.contract_end_date or "").strip())
    except ValueError:
        return "Start and end dates are required (YYYY-MM-DD)."
    if end <= start:
        return "End date must be after start date."

    notes = (data.notes or "").strip() or None
    return ParsedContractData(
        team_id=team_id,
        competition_id=competition_id,
        contract_value=quantize_money(value),
        commission_percentage=quantize_money(percentage),
        contract_start_date=start,
        contract_end_date=end,
        notes=notes,
        added_retroactively=_parse_checkbox(data.added_retroactively),
    )


# ---------------------------------------------------------------------------
# View models
# ---------------------------------------------------------------------------


@dataclass
class ContractRow:
    """Contract joined with player, team and competition names."""

    contract: Contract
    player_name: str
    team_name: str
    competition_name: str

    @property
    def commission(self) -> Decimal:
        return compute_commission(
            self.contract.contract_value, self.contract.commission_percentage
        )


@dataclass
class ContractForm:
    """Everything needed to render the create/edit contract form."""

    mode: str  # "create" | "edit"
    player: Player
    teams: list[TeamOption]
    competitions: list[Competition]
    contract: Contract | None = None
    handoff: ContractHandoff | None = None
    historical: bool = False
    defaults: dict[str, object] = field(default_factory=dict)

    @property
    def is_edit(self) -> bool:
        return self.mode == "edit"


@dataclass
class ContractSaveResult:
    contract: Contract
    contract_id: int
    created: bool
    is_active: bool
    payment: Payment | None = None
    warning: str | None = None
    refetch: tuple[str, ...] = CONTRACT_REFETCH

    @property
    def is_historical(self) -> bool:
        return not self.is_active

    @property
    def message(self) -> str:
        kind = "Active contract" if self.is_active else "Historical contract"
        action = "created" if self.created else "updated"
        return f"{kind} {action} successfully."


async def _select_contract_rows(db: AsyncSession, *conditions) -> list[ContractRow]:
    result = await db.execute(
        select(Contract, Player.first_name, Player.last_name, Team.name, Competition.name)  # type: ignore[call-overload]
        .join(Player, Player.id == Contract.player_id)
        .join(Team, Team.id == Contract.team_id)
        .join(Competition, Competition.id == Contract.competition_id)
        .where(*conditions)
        .order_by(Contract.contract_end_date.desc(), Contract.id.desc())
    )
    return [
        ContractRow(
            contract=contract,
            player_name=f"{first} {last}",
            team_name=team_name,
            competition_name=competition_name,
        )
        for contract, first, last, team_name, competition_name in result.all()
    ]


async def load_contracts(
    db: AsyncSession, user_id: int
) -> tuple[list[ContractRow], list[ContractRow]]:
    """Return (active contracts, contract history) for the agent."""
    async with db.begin():
        rows = await _select_contract_rows(db, Contract.user_id == user_id)
    active = [row for row in rows if row.contract.is_active]
    history = [row for row in rows if not row.contract.is_active]
    return active, history


async def load_player_contracts(
    db: AsyncSession, user_id: int, player_id: int
) -> tuple[ContractRow | None, list[ContractRow]]:
    """Return (current active contract, history) for one player."""
    async with db.begin():
        rows = await _select_contract_rows(
            db,
            Contract.user_id == user_id,
            Contract.player_id == player_id,
        )
    current = next((row for row in rows if row.contract.is_active), None)
    history = [row for row in rows if not row.contract.is_active]
    return current, history


async def _get_owned_contract(db: AsyncSession, user_id: int, contract_id: int) -> Contract:
    result = await db.execute(
        select(Contract).where(
            Contract.id == contract_id,  # type: ignore[arg-type]
            Contract.user_id == user_id,  # type: ignore[arg-type]
        )
    )
    contract = result.scalar_one_or_none()
    if contract is None:
        raise NotFoundError("contract", contract_id)
    return contract


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------


class ContractManager:
    """Opens and saves the single-contract-per-player workflow for one agent."""

    def __init__(
        self,
        db: AsyncSession,
        user_id: int,
        *,
        today: date | None = None,
    ) -> None:
        self.db = db
        self.user_id = user_id
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    async def open(
        self,
        player_id: int,
        handoff: ContractHandoff | None = None,
        historical: bool = False,
    ) -> ContractForm:
        """Load what the contract form needs for this player.

        Edit mode when the player has an active contract (unless a historical
        entry was asked for), create mode otherwise, pre-filled from the
        hand-off when one is given.
        """
        try:
            async with self.db.begin():
                player = await self._get_player(player_id)
                teams = await fetch_team_options(self.db)
                competitions = await fetch_competitions(self.db)
                active = await self._get_active_contract(player_id)
        except SQLAlchemyError as exc:
            logger.exception("Could not open contract form for player id=%s", player_id)
            raise ContractManagerUnavailable(
                "The contract form could not be loaded. Please try again."
            ) from exc

        if active is not None and not historical:
            return ContractForm(
                mode="edit",
                player=player,
                teams=teams,
                competitions=competitions,
                contract=active,
                defaults=_defaults_from_contract(active),
            )

        defaults: dict[str, object] = {"added_retroactively": historical}
        if handoff is not None:
            defaults["team_id"] = handoff.team_id
            if handoff.competition_id is not None:
                defaults["competition_id"] = handoff.competition_id
        return ContractForm(
            mode="create",
            player=player,
            teams=teams,
            competitions=competitions,
            handoff=handoff,
            historical=historical,
            defaults=defaults,
        )

    async def edit_form(
        self, contract_id: int, handoff: ContractHandoff | None = None
    ) -> ContractForm:
        """Load any of the agent's contracts, active or historical, for editing.

        A hand-off from a signed deal rides along so that saving links the deal.
        """
        async with self.db.begin():
            contract = await _get_owned_contract(self.db, self.user_id, contract_id)
            player = await self._get_player(contract.player_id)
            teams = await fetch_team_options(self.db)
            competitions = await fetch_competitions(self.db)
        return ContractForm(
            mode="edit",
            player=player,
            teams=teams,
            competitions=competitions,
            contract=contract,
            handoff=handoff,
            historical=not contract.is_active,
            defaults=_defaults_from_contract(contract),
        )

    async def resolve_handoff(self, team_deal_id: int) -> ContractHandoff | None:
        """Rebuild a hand-off from a deal id carried in the URL."""
        async with self.db.begin():
            result = await self.db.execute(
                select(TeamDeal, Team)  # type: ignore[call-overload]
                .join(Team, Team.id == TeamDeal.team_id)
                .where(
                    TeamDeal.id == team_deal_id,
                    TeamDeal.user_id == self.user_id,
                )
            )
            row = result.one_or_none()
        if row is None:
            return None
        deal, team = row
        return ContractHandoff(
            team_deal_id=deal.id,
            team_id=team.id,
            team_name=team.name,
            competition_id=team.competition_id,
        )

    async def create(
        self,
        player_id: int,
        data: ParsedContractData,
        handoff: ContractHandoff | None = None,
        ctx: PipelineContext | None = None,
    ) -> ContractSaveResult:
        """Create a contract and run the activation cascade when it is active.

        Each write is its own unit of work; a failure after the contract row
        exists is logged and reported as a warning, never compensated.
        """
        is_active = is_contract_active(
            data.contract_end_date, data.added_retroactively, self.today
        )

        # Step 1: the contract row itself
        async with self.db.begin():
            await self._get_player(player_id)
            await self._check_reference(data)
            if is_active and await self._get_active_contract(player_id) is not None:
                raise ValidationError(
                    "This player already has an active contract. Edit it or add a historical contract."
                )
            now = datetime.utcnow()
            contract = Contract(
                user_id=self.user_id,
                player_id=player_id,
                team_id=data.team_id,
                competition_id=data.competition_id,
                contract_value=data.contract_value,
                commission_percentage=data.commission_percentage,
                contract_start_date=data.contract_start_date,
                contract_end_date=data.contract_end_date,
                notes=data.notes,
                is_active=is_active,
                added_retroactively=data.added_retroactively,
                team_deal_id=handoff.team_deal_id if handoff is not None else None,
                created_at=now,
                updated_at=now,
            )
            self.db.add(contract)
            await self.db.flush()
            contract_id = int(contract.id)  # type: ignore[arg-type]

        logger.info(
            "Created %s contract id=%s for player id=%s",
            "active" if is_active else "historical",
            contract_id,
            player_id,
        )
        result = ContractSaveResult(
            contract=contract, contract_id=contract_id, created=True, is_active=is_active
        )

        if is_active:
            # Step 2: sign the player, then book the commission
            try:
                await self._sign_player(player_id, contract_id)
                result.payment = await self._book_commission(contract_id, data)
            except SQLAlchemyError:
                logger.exception(
                    "Contract id=%s saved but the activation cascade failed", contract_id
                )
                result.warning = (
                    "The contract was saved, but updating the player or creating the "
                    "payment failed. Please check the player and payments pages."
                )
                # The rollback expired every instance in the session
                await self._reload_contract(result)

        # Step 4: the hand-off has been consumed
        if ctx is not None:
            ctx.clear_handoff()
        return result

    async def update(
        self,
        contract_id: int,
        data: ParsedContractData,
        handoff: ContractHandoff | None = None,
    ) -> ContractSaveResult:
        """Edit a contract in place. No payment or player-status cascade.

        Activity is recomputed, so reviving a historical contract is refused
        while the player holds another active one.
        """
        is_active = is_contract_active(
            data.contract_end_date, data.added_retroactively, self.today
        )
        async with self.db.begin():
            contract = await _get_owned_contract(self.db, self.user_id, contract_id)
            await self._check_reference(data)
            if is_active:
                other = await self._get_active_contract(
                    contract.player_id, exclude_id=contract_id
                )
                if other is not None:
                    raise ValidationError(
                        "This player already has an active contract. "
                        "Keep this one historical or end the active contract first."
                    )
            contract.team_id = data.team_id
            contract.competition_id = data.competition_id
            contract.contract_value = data.contract_value
            contract.commission_percentage = data.commission_percentage
            contract.contract_start_date = data.contract_start_date
            contract.contract_end_date = data.contract_end_date
            contract.notes = data.notes
            contract.added_retroactively = data.added_retroactively
            contract.is_active = is_active
            if handoff is not None:
                contract.team_deal_id = handoff.team_deal_id
            contract.updated_at = datetime.utcnow()
        logger.info("Updated contract id=%s", contract_id)
        return ContractSaveResult(
            contract=contract, contract_id=contract_id, created=False, is_active=is_active
        )

    async def _get_player(self, player_id: int) -> Player:
        result = await self.db.execute(
            select(Player).where(
                Player.id == player_id,  # type: ignore[arg-type]
                Player.user_id == self.user_id,  # type: ignore[arg-type]
            )
        )
        player = result.scalar_one_or_none()
        if player is None:
            raise NotFoundError("player", player_id)
        return player

    async def _get_active_contract(
        self, player_id: int, exclude_id: int | None = None
    ) -> Contract | None:
        stmt = select(Contract).where(
            Contract.player_id == player_id,  # type: ignore[arg-type]
            Contract.user_id == self.user_id,  # type: ignore[arg-type]
            Contract.is_active.is_(True),  # type: ignore[attr-defined]
        )
        if exclude_id is not None:
            stmt = stmt.where(Contract.id != exclude_id)  # type: ignore[arg-type]
        result = await self.db.execute(
            stmt.order_by(Contract.id.desc()).limit(1)  # type: ignore[union-attr]
        )
        return result.scalar_one_or_none()

    async def _check_reference(self, data: ParsedContractData) -> None:
        team = await self.db.get(Team, data.team_id)
        if team is None:
            raise ValidationError("Please select a team.")
        competition = await self.db.get(Competition, data.competition_id)
        if competition is None:
            raise ValidationError("Please select a competition.")

    async def _reload_contract(self, result: ContractSaveResult) -> None:
        try:
            async with self.db.begin():
                await self.db.refresh(result.contract)
        except SQLAlchemyError:
            logger.exception("Could not reload contract id=%s", result.contract_id)

    async def _sign_player(self, player_id: int, contract_id: int) -> None:
        async with self.db.begin():
            player = await self._get_player(player_id)
            player.player_deal_status = PlayerDealStatus.signed
            player.current_contract_id = contract_id
            player.updated_at = datetime.utcnow()
        logger.info("Player id=%s signed under contract id=%s", player_id, contract_id)

    async def _book_commission(self, contract_id: int, data: ParsedContractData) -> Payment:
        async with self.db.begin():
            payment = Payment(
                user_id=self.user_id,
                contract_id=contract_id,
                amount=data.commission,
                due_date=data.contract_end_date,
                status=PaymentStatus.pending,
                created_at=datetime.utcnow(),
            )
            self.db.add(payment)
            await self.db.flush()
        logger.info(
            "Booked commission payment id=%s (%s) for contract id=%s",
            payment.id,
            format_euro(payment.amount),
            contract_id,
        )
        return payment


def _defaults_from_contract(contract: Contract) -> dict[str, object]:
    return {
        "team_id": contract.team_id,
        "competition_id": contract.competition_id,
        "contract_value": contract.contract_value,
        "commission_percentage": contract.commission_percentage,
        "contract_start_date": contract.contract_start_date.isoformat(),
        "contract_end_date": contract.contract_end_date.isoformat(),
        "notes": contract.notes or "",
        "added_retroactively": contract.added_retroactively,
    }


def form_defaults_from_data(data: ContractFormData) -> dict[str, object]:
    """Echo submitted values back into the form after a validation error."""
    return {
        "team_id": int(data.team_id) if (data.team_id or "").isdigit() else None,
        "competition_id": (
            int(data.competition_id) if (data.competition_id or "").isdigit() else None
        ),
        "contract_value": data.contract_value or "",
        "commission_percentage": data.commission_percentage or "",
        "contract_start_date": data.contract_start_date or "",
        "contract_end_date": data.contract_end_date or "",
        "notes": data.notes or "",
        "added_retroactively": _parse_checkbox(data.added_retroactively),
    }
