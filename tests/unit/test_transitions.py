"""Unit tests for the pipeline transition tables."""

import pytest

from app.models.fields import DealStage, PlayerDealStatus
from app.services.deal_pipeline import TransitionKind, TransitionResult, is_allowed


@pytest.mark.parametrize("from_state", [s.value for s in PlayerDealStatus])
@pytest.mark.parametrize("to_state", [s.value for s in PlayerDealStatus])
def test_player_status_allows_every_change(from_state, to_state):
    expected = from_state != to_state
    assert is_allowed(TransitionKind.player_status, from_state, to_state) is expected


@pytest.mark.parametrize(
    "from_state, to_state, expected",
    [
        ("ongoing", "sent", True),
        ("ongoing", "signed", True),
        ("ongoing", "not_signed", True),
        ("sent", "ongoing", True),
        ("sent", "signed", True),
        ("sent", "not_signed", True),
        ("signed", "ongoing", False),
        ("signed", "sent", False),
        ("signed", "not_signed", False),
        ("not_signed", "ongoing", False),
        ("not_signed", "signed", False),
    ],
)
def test_deal_stage_table(from_state, to_state, expected):
    assert is_allowed(TransitionKind.deal_stage, from_state, to_state) is expected


def test_unknown_states_are_never_allowed():
    assert is_allowed(TransitionKind.deal_stage, "ongoing", "archived") is False
    assert is_allowed(TransitionKind.player_status, "retired", "signed") is False


def test_terminal_stages_have_no_exits():
    for stage in (DealStage.signed, DealStage.not_signed):
        assert not any(
            is_allowed(TransitionKind.deal_stage, stage.value, target.value) for target in DealStage
        )


def test_transition_result_serialises_for_the_api():
    result = TransitionResult(
        kind=TransitionKind.deal_stage,
        entity_id=4,
        from_state="sent",
        to_state="signed",
        changed=True,
        refetch=("team_deals", "players"),
        redirect="/contracts/new?player_id=1&team_deal_id=4",
    )
    payload = result.as_dict()
    assert payload["ok"] is True
    assert payload["kind"] == "deal_stage"
    assert payload["refetch"] == ["team_deals", "players"]
    assert payload["redirect"].startswith("/contracts/new")
