"""Integration tests for the contract workflow, its activation cascade and payments."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fields import PaymentStatus, PlayerDealStatus
from app.routes import contracts as contracts_routes
from app.schemas.contracts import Contract, Payment
from app.schemas.players import Player
from app.services.contract_manager import ContractManager
from app.services.errors import NotFoundError, ValidationError
from app.services.payment_service import mark_paid
from app.services.pipeline_context import PipelineContext
from tests.integration.auth_helpers import create_agent, create_team, sign_in
from tests.integration.factories import (
    contract_data,
    fetch_all,
    fetch_one,
    make_contract,
    make_deal,
    make_player,
)


class PlayerStepFails(ContractManager):
    """Contract workflow whose player update hits a database error."""

    async def _sign_player(self, player_id, contract_id):
        async with self.db.begin():
            raise OperationalError("UPDATE players", {}, Exception("database is locked"))


class PaymentStepFails(ContractManager):
    """Contract workflow whose commission insert hits a database error."""

    async def _book_commission(self, contract_id, data):
        async with self.db.begin():
            raise OperationalError("INSERT INTO payments", {}, Exception("database is locked"))


@pytest_asyncio.fixture
async def agent(app_client: AsyncClient, db_session: AsyncSession) -> int:
    user_id = await create_agent(db_session)
    await sign_in(app_client, db_session, user_id)
    return user_id


@pytest_asyncio.fixture
async def team(db_session: AsyncSession) -> tuple[int, int]:
    return await create_team(db_session)


def _form(team_id: int, competition_id: int, *, end: date, **extra: str) -> dict[str, str]:
    data = {
        "team_id": str(team_id),
        "competition_id": str(competition_id),
        "contract_value": "250000",
        "commission_percentage": "8",
        "contract_start_date": (end - timedelta(days=365)).isoformat(),
        "contract_end_date": end.isoformat(),
    }
    data.update(extra)
    return data


@pytest.mark.asyncio
class TestCreateContract:
    async def test_active_contract_signs_player_and_books_commission(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        end = date.today() + timedelta(days=200)

        response = await app_client.post(
            "/contracts",
            data={"player_id": str(player_id), **_form(team_id, competition_id, end=end)},
            follow_redirects=False,
        )
        assert response.status_code == 303
        assert response.headers["location"].startswith("/contracts?success=")

        contract = await fetch_one(db_session, select(Contract))
        assert contract.is_active is True
        assert contract.added_retroactively is False

        player = await fetch_one(db_session, select(Player))
        assert player.player_deal_status is PlayerDealStatus.signed
        assert player.current_contract_id == contract.id

        payment = await fetch_one(db_session, select(Payment))
        assert payment.contract_id == contract.id
        assert payment.amount == Decimal("20000.00")
        assert payment.due_date == end
        assert payment.status is PaymentStatus.pending

    async def test_retroactive_contract_has_no_side_effects(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        end = date.today() + timedelta(days=200)

        response = await app_client.post(
            "/contracts",
            data={
                "player_id": str(player_id),
                **_form(team_id, competition_id, end=end, added_retroactively="on"),
            },
            follow_redirects=False,
        )
        assert response.status_code == 303

        contract = await fetch_one(db_session, select(Contract))
        assert contract.is_active is False
        assert await fetch_all(db_session, select(Payment)) == []
        player = await fetch_one(db_session, select(Player))
        assert player.player_deal_status is PlayerDealStatus.free_agent
        assert player.current_contract_id is None

    async def test_past_end_date_is_historical(self, db_session: AsyncSession, agent: int, team):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)

        result = await ContractManager(db_session, agent).create(
            player_id, contract_data(team_id, competition_id, ends_in_days=-30)
        )
        assert result.is_historical
        assert result.payment is None
        assert result.message == "Historical contract created successfully."
        assert await fetch_all(db_session, select(Payment)) == []

    async def test_end_date_today_counts_as_active(self, db_session: AsyncSession, agent: int, team):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)

        result = await ContractManager(db_session, agent).create(
            player_id, contract_data(team_id, competition_id, ends_in_days=0)
        )
        assert result.is_active
        assert result.payment is not None

    async def test_second_active_contract_is_rejected(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        await make_contract(db_session, agent, player_id, team_id, competition_id)

        response = await app_client.post(
            "/contracts",
            data={
                "player_id": str(player_id),
                **_form(team_id, competition_id, end=date.today() + timedelta(days=90)),
            },
        )
        assert response.status_code == 200
        assert "already has an active contract" in response.text
        assert len(await fetch_all(db_session, select(Contract))) == 1
        assert len(await fetch_all(db_session, select(Payment))) == 1

    async def test_second_active_contract_raises_in_service(
        self, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        await make_contract(db_session, agent, player_id, team_id, competition_id)

        with pytest.raises(ValidationError):
            await ContractManager(db_session, agent).create(
                player_id, contract_data(team_id, competition_id, ends_in_days=50)
            )

    async def test_historical_contract_allowed_beside_active(
        self, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        await make_contract(db_session, agent, player_id, team_id, competition_id)

        result = await ContractManager(db_session, agent).create(
            player_id, contract_data(team_id, competition_id, retroactive=True)
        )
        assert result.is_historical
        assert len(await fetch_all(db_session, select(Contract))) == 2

    async def test_invalid_form_re_renders(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        end = date.today() + timedelta(days=30)

        response = await app_client.post(
            "/contracts",
            data={
                "player_id": str(player_id),
                **_form(team_id, competition_id, end=end, commission_percentage="150"),
            },
        )
        assert response.status_code == 200
        assert "Commission percentage must be between 0 and 100." in response.text
        assert await fetch_all(db_session, select(Contract)) == []

    async def test_handoff_is_stored_and_cleared(self, db_session: AsyncSession, agent: int, team):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        deal_id = await make_deal(db_session, agent, player_id, team_id)

        manager = ContractManager(db_session, agent)
        handoff = await manager.resolve_handoff(deal_id)
        assert handoff is not None
        ctx = PipelineContext(user_id=agent, handoff=handoff)

        result = await manager.create(
            player_id, contract_data(team_id, competition_id), handoff=handoff, ctx=ctx
        )
        assert ctx.handoff is None
        contract = await fetch_one(db_session, select(Contract))
        assert contract.id == result.contract.id
        assert contract.team_deal_id == deal_id

    async def test_foreign_handoff_resolves_to_nothing(
        self, db_session: AsyncSession, agent: int, team
    ):
        team_id, _competition_id = team
        other = await create_agent(db_session, email="other@example.com")
        player_id = await make_player(db_session, other)
        deal_id = await make_deal(db_session, other, player_id, team_id)

        assert await ContractManager(db_session, agent).resolve_handoff(deal_id) is None


@pytest.mark.asyncio
class TestActivationCascadeFailure:
    async def test_payment_failure_keeps_contract_and_warns(
        self, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)

        result = await PaymentStepFails(db_session, agent).create(
            player_id, contract_data(team_id, competition_id)
        )
        assert result.warning is not None
        assert result.payment is None
        assert result.contract.id == result.contract_id
        assert result.message == "Active contract created successfully."

        contract = await fetch_one(db_session, select(Contract))
        assert contract.id == result.contract_id
        assert contract.is_active is True
        player = await fetch_one(db_session, select(Player))
        assert player.player_deal_status is PlayerDealStatus.signed
        assert player.current_contract_id == result.contract_id
        assert await fetch_all(db_session, select(Payment)) == []

    async def test_player_failure_is_reported_on_redirect(
        self,
        app_client: AsyncClient,
        db_session: AsyncSession,
        agent: int,
        team,
        monkeypatch: pytest.MonkeyPatch,
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        monkeypatch.setattr(contracts_routes, "ContractManager", PlayerStepFails)

        response = await app_client.post(
            "/contracts",
            data={
                "player_id": str(player_id),
                **_form(team_id, competition_id, end=date.today() + timedelta(days=120)),
            },
            follow_redirects=False,
        )
        assert response.status_code == 303
        location = response.headers["location"]
        assert location.startswith("/contracts?success=")
        assert "error=The%20contract%20was%20saved" in location

        contract = await fetch_one(db_session, select(Contract))
        assert contract.is_active is True
        player = await fetch_one(db_session, select(Player))
        assert player.player_deal_status is PlayerDealStatus.free_agent
        assert player.current_contract_id is None
        assert await fetch_all(db_session, select(Payment)) == []


@pytest.mark.asyncio
class TestUpdateContract:
    async def test_reviving_historical_beside_active_is_rejected(
        self, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        await make_contract(db_session, agent, player_id, team_id, competition_id)
        historical_id = await make_contract(
            db_session, agent, player_id, team_id, competition_id, retroactive=True
        )

        with pytest.raises(ValidationError):
            await ContractManager(db_session, agent).update(
                historical_id, contract_data(team_id, competition_id, retroactive=False)
            )

        active = await fetch_all(
            db_session,
            select(Contract).where(Contract.is_active.is_(True)),  # type: ignore[attr-defined]
        )
        assert len(active) == 1
        historical = await fetch_one(
            db_session,
            select(Contract).where(Contract.id == historical_id),  # type: ignore[arg-type]
        )
        assert historical.added_retroactively is True

    async def test_reviving_historical_re_renders_with_error(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        await make_contract(db_session, agent, player_id, team_id, competition_id)
        historical_id = await make_contract(
            db_session, agent, player_id, team_id, competition_id, retroactive=True
        )

        response = await app_client.post(
            f"/contracts/{historical_id}",
            data=_form(team_id, competition_id, end=date.today() + timedelta(days=60)),
        )
        assert response.status_code == 200
        assert "already has an active contract" in response.text

    async def test_historical_alone_can_become_active(
        self, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        historical_id = await make_contract(
            db_session, agent, player_id, team_id, competition_id, retroactive=True
        )

        result = await ContractManager(db_session, agent).update(
            historical_id, contract_data(team_id, competition_id)
        )
        assert result.is_active
        assert result.message == "Active contract updated successfully."

    async def test_signed_deal_links_existing_contract(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        contract_id = await make_contract(db_session, agent, player_id, team_id, competition_id)
        deal_id = await make_deal(db_session, agent, player_id, team_id)

        form = await app_client.get(
            f"/contracts/{contract_id}/edit", params={"team_deal_id": deal_id}
        )
        assert form.status_code == 200
        assert "Saving links this contract to the deal." in form.text
        assert f'name="team_deal_id" value="{deal_id}"' in form.text

        response = await app_client.post(
            f"/contracts/{contract_id}",
            data={
                "team_deal_id": str(deal_id),
                **_form(team_id, competition_id, end=date.today() + timedelta(days=300)),
            },
            follow_redirects=False,
        )
        assert response.status_code == 303
        contract = await fetch_one(db_session, select(Contract))
        assert contract.team_deal_id == deal_id


@pytest.mark.asyncio
class TestContractForms:
    async def test_new_form_shows_handoff_banner(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int, team
    ):
        team_id, _competition_id = team
        player_id = await make_player(db_session, agent)
        deal_id = await make_deal(db_session, agent, player_id, team_id)

        response = await app_client.get(
            "/contracts/new", params={"player_id": player_id, "team_deal_id": deal_id}
        )
        assert response.status_code == 200
        assert "Deal with Olimpia Milano signed." in response.text
        assert f'<option value="{team_id}" selected>' in response.text

    async def test_new_form_switches_to_edit_for_active_contract(
        self, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        contract_id = await make_contract(db_session, agent, player_id, team_id, competition_id)

        form = await ContractManager(db_session, agent).open(player_id)
        assert form.is_edit
        assert form.contract is not None and form.contract.id == contract_id

        historical = await ContractManager(db_session, agent).open(player_id, historical=True)
        assert not historical.is_edit
        assert historical.defaults["added_retroactively"] is True

    async def test_new_form_without_player_redirects(self, app_client: AsyncClient, agent: int):
        response = await app_client.get("/contracts/new", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"].startswith("/contracts?error=")

    async def test_update_changes_fields_without_new_payment(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        contract_id = await make_contract(db_session, agent, player_id, team_id, competition_id)
        end = date.today() + timedelta(days=500)

        response = await app_client.post(
            f"/contracts/{contract_id}",
            data=_form(team_id, competition_id, end=end, notes="Renegotiated"),
            follow_redirects=False,
        )
        assert response.status_code == 303

        contract = await fetch_one(db_session, select(Contract))
        assert contract.contract_value == Decimal("250000.00")
        assert contract.notes == "Renegotiated"
        assert contract.contract_end_date == end
        assert len(await fetch_all(db_session, select(Payment))) == 1

    async def test_edit_page_renders(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        contract_id = await make_contract(db_session, agent, player_id, team_id, competition_id)

        response = await app_client.get(f"/contracts/{contract_id}/edit")
        assert response.status_code == 200
        assert "Marco Rossi" in response.text

    async def test_list_page_groups_active_and_history(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        await make_contract(db_session, agent, player_id, team_id, competition_id)

        response = await app_client.get("/contracts")
        assert response.status_code == 200
        assert "Olimpia Milano" in response.text

    async def test_preview_reports_commission(self, app_client: AsyncClient, agent: int):
        end = (date.today() + timedelta(days=10)).isoformat()
        response = await app_client.get(
            "/contracts/preview",
            params={
                "contract_value": "100000",
                "commission_percentage": "5",
                "contract_end_date": end,
            },
        )
        assert response.status_code == 200
        payload = response.json()
        assert payload["commission"] == "5000.00"
        assert payload["commission_display"] == "€5.000,00"
        assert payload["is_active"] is True
        assert payload["suggest_retroactive"] is False

    async def test_preview_suggests_retroactive_for_past_end(
        self, app_client: AsyncClient, agent: int
    ):
        end = (date.today() - timedelta(days=10)).isoformat()
        response = await app_client.get(
            "/contracts/preview", params={"contract_end_date": end}
        )
        payload = response.json()
        assert payload["is_active"] is False
        assert payload["suggest_retroactive"] is True


@pytest.mark.asyncio
class TestPayments:
    async def test_mark_paid_records_today(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        await make_contract(db_session, agent, player_id, team_id, competition_id)
        payment = await fetch_one(db_session, select(Payment))
        payment_id = payment.id

        response = await app_client.post(
            f"/payments/{payment_id}/mark-paid", follow_redirects=False
        )
        assert response.status_code == 303
        assert response.headers["location"] == "/payments?success=Payment%20marked%20as%20paid."

        paid = await fetch_one(db_session, select(Payment))
        assert paid.status is PaymentStatus.paid
        assert paid.paid_date == date.today()

        again = await app_client.post(f"/payments/{payment_id}/mark-paid", follow_redirects=False)
        assert again.status_code == 303
        assert "error=" in again.headers["location"]

    async def test_payments_page_lists_commission(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        player_id = await make_player(db_session, agent)
        await make_contract(db_session, agent, player_id, team_id, competition_id)

        response = await app_client.get("/payments")
        assert response.status_code == 200
        assert "€5.000,00" in response.text
        assert "Marco Rossi" in response.text

    async def test_mark_paid_rejects_foreign_payment(
        self, db_session: AsyncSession, agent: int, team
    ):
        team_id, competition_id = team
        other = await create_agent(db_session, email="other@example.com")
        player_id = await make_player(db_session, other)
        await make_contract(db_session, other, player_id, team_id, competition_id)
        payment = await fetch_one(db_session, select(Payment))

        with pytest.raises(NotFoundError):
            await mark_paid(db_session, agent, int(payment.id))
