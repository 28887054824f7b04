"""Integration tests for players, prospects and the linked player contact."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.fields import PlayerDealStatus
from app.schemas.contacts import Contact
from app.schemas.contracts import Contract, Payment
from app.schemas.deals import TeamDeal
from app.schemas.players import Player, Prospect
from app.schemas.reminders import Reminder
from app.services.player_service import ProspectFormData, convert_prospect, create_prospect
from app.services.reminder_service import ParsedReminderData, create_reminder
from app.services.errors import NotFoundError
from tests.integration.auth_helpers import create_agent, create_team, sign_in
from tests.integration.factories import (
    fetch_all,
    fetch_one,
    make_contract,
    make_deal,
    make_player,
)


@pytest_asyncio.fixture
async def agent(app_client: AsyncClient, db_session: AsyncSession) -> int:
    user_id = await create_agent(db_session)
    await sign_in(app_client, db_session, user_id)
    return user_id


@pytest.mark.asyncio
class TestPlayers:
    async def test_create_player_starts_as_free_agent_with_contact(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        response = await app_client.post(
            "/players",
            data={
                "first_name": " Luca ",
                "last_name": "Bianchi",
                "date_of_birth": "2001-04-12",
                "position": "pg",
                "email": "luca@example.com",
                "phone": "",
            },
            follow_redirects=False,
        )
        assert response.status_code == 303
        assert response.headers["location"] == "/players?success=created"

        player = await fetch_one(db_session, select(Player))
        assert player.first_name == "Luca"
        assert player.position == "PG"
        assert player.player_deal_status is PlayerDealStatus.free_agent
        assert player.phone is None

        contact = await fetch_one(db_session, select(Contact))
        assert contact.player_id == player.id
        assert contact.name == "Luca Bianchi"
        assert contact.email == "luca@example.com"

    async def test_invalid_player_re_renders_with_values(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        response = await app_client.post(
            "/players",
            data={"first_name": "Luca", "last_name": "", "email": "luca@example.com"},
        )
        assert response.status_code == 200
        assert "Last name is required." in response.text
        assert 'value="luca@example.com"' in response.text
        assert await fetch_all(db_session, select(Player)) == []

    async def test_list_filters_by_search(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        await make_player(db_session, agent, "Marco", "Rossi")
        await make_player(db_session, agent, "Luca", "Bianchi")

        response = await app_client.get("/players", params={"q": "ross"})
        assert response.status_code == 200
        assert "Marco Rossi" in response.text
        assert "Luca Bianchi" not in response.text

    async def test_flash_code_is_expanded(self, app_client: AsyncClient, agent: int):
        response = await app_client.get("/players", params={"success": "created"})
        assert "Player created successfully." in response.text

    async def test_edit_syncs_linked_contact(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        player_id = await make_player(db_session, agent)
        response = await app_client.post(
            f"/players/{player_id}",
            data={
                "first_name": "Marco",
                "last_name": "Verdi",
                "email": "marco@example.com",
                "phone": "+39 333 000",
            },
            follow_redirects=False,
        )
        assert response.status_code == 303
        assert response.headers["location"] == f"/players/{player_id}?success=updated"

        contact = await fetch_one(db_session, select(Contact))
        assert contact.name == "Marco Verdi"
        assert contact.phone == "+39 333 000"

    async def test_edit_does_not_touch_deal_status(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        team_id, competition_id = await create_team(db_session)
        player_id = await make_player(db_session, agent)
        await make_contract(db_session, agent, player_id, team_id, competition_id)

        await app_client.post(
            f"/players/{player_id}",
            data={"first_name": "Marco", "last_name": "Rossi"},
            follow_redirects=False,
        )
        player = await fetch_one(db_session, select(Player))
        assert player.player_deal_status is PlayerDealStatus.signed

    async def test_detail_shows_current_contract(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        team_id, competition_id = await create_team(db_session)
        player_id = await make_player(db_session, agent)
        await make_contract(db_session, agent, player_id, team_id, competition_id)

        response = await app_client.get(f"/players/{player_id}")
        assert response.status_code == 200
        assert "Olimpia Milano" in response.text

    async def test_other_agents_player_is_404(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        other = await create_agent(db_session, email="other@example.com")
        player_id = await make_player(db_session, other, "Hidden", "Player")

        response = await app_client.get(f"/players/{player_id}")
        assert response.status_code == 404
        assert "Hidden Player" not in response.text

    async def test_delete_cascades_and_detaches_reminders(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        team_id, competition_id = await create_team(db_session)
        player_id = await make_player(db_session, agent)
        deal_id = await make_deal(db_session, agent, player_id, team_id)
        await make_contract(db_session, agent, player_id, team_id, competition_id)
        await create_reminder(
            db_session,
            agent,
            ParsedReminderData(title="Call back", player_id=player_id, team_deal_id=deal_id),
        )

        response = await app_client.post(f"/players/{player_id}/delete", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/players?success=deleted"

        assert await fetch_all(db_session, select(Player)) == []
        assert await fetch_all(db_session, select(TeamDeal)) == []
        assert await fetch_all(db_session, select(Contract)) == []
        assert await fetch_all(db_session, select(Payment)) == []
        assert await fetch_all(db_session, select(Contact)) == []

        reminder = await fetch_one(db_session, select(Reminder))
        assert reminder.title == "Call back"
        assert reminder.player_id is None
        assert reminder.team_deal_id is None


@pytest.mark.asyncio
class TestProspects:
    async def test_create_prospect(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        response = await app_client.post(
            "/players/prospects",
            data={"first_name": "Nico", "last_name": "Mannion", "notes": "Watch in U20"},
            follow_redirects=False,
        )
        assert response.status_code == 303
        assert response.headers["location"] == "/players?tab=prospects&success=prospect_created"

        prospect = await fetch_one(db_session, select(Prospect))
        assert prospect.is_converted is False
        assert prospect.notes == "Watch in U20"

        page = await app_client.get("/players", params={"tab": "prospects"})
        assert "Nico Mannion" in page.text

    async def test_prospect_requires_names(self, app_client: AsyncClient, agent: int):
        response = await app_client.post(
            "/players/prospects", data={"first_name": "", "last_name": "X"}
        )
        assert response.status_code == 200
        assert "First name is required." in response.text

    async def test_convert_creates_free_agent_and_flags_prospect(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        prospect = await create_prospect(
            db_session,
            agent,
            ProspectFormData(first_name="Nico", last_name="Mannion", email="nico@example.com"),
        )
        prospect_id = prospect.id

        response = await app_client.post(
            f"/players/prospects/{prospect_id}/convert", follow_redirects=False
        )
        assert response.status_code == 303

        player = await fetch_one(db_session, select(Player))
        assert response.headers["location"] == f"/players/{player.id}?success=converted"
        assert player.full_name == "Nico Mannion"
        assert player.email == "nico@example.com"
        assert player.player_deal_status is PlayerDealStatus.free_agent

        refreshed = await fetch_one(db_session, select(Prospect))
        assert refreshed.is_converted is True
        assert refreshed.converted_player_id == player.id

        again = await app_client.post(
            f"/players/prospects/{prospect_id}/convert", follow_redirects=False
        )
        assert again.status_code == 404

    async def test_converted_prospect_cannot_be_converted_twice(
        self, db_session: AsyncSession, agent: int
    ):
        prospect = await create_prospect(
            db_session, agent, ProspectFormData(first_name="Nico", last_name="Mannion")
        )
        prospect_id = int(prospect.id)  # type: ignore[arg-type]
        await convert_prospect(db_session, agent, prospect_id)
        with pytest.raises(NotFoundError):
            await convert_prospect(db_session, agent, prospect_id)
        assert len(await fetch_all(db_session, select(Player))) == 1

    async def test_delete_prospect(
        self, app_client: AsyncClient, db_session: AsyncSession, agent: int
    ):
        prospect = await create_prospect(
            db_session, agent, ProspectFormData(first_name="Nico", last_name="Mannion")
        )
        response = await app_client.post(
            f"/players/prospects/{prospect.id}/delete", follow_redirects=False
        )
        assert response.status_code == 303
        assert await fetch_all(db_session, select(Prospect)) == []
