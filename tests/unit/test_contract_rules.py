"""Unit tests for commission maths, activity rules and contract form parsing."""

from datetime import date
from decimal import Decimal

from app.services.contract_manager import (
    ContractFormData,
    ParsedContractData,
    compute_commission,
    form_defaults_from_data,
    is_contract_active,
    parse_contract_form,
    suggest_retroactive,
)

TODAY = date(2025, 3, 1)


def _form(**overrides) -> ContractFormData:
    values = {
        "team_id": "1",
        "competition_id": "2",
        "contract_value": "100000",
        "commission_percentage": "5",
        "contract_start_date": "2025-01-01",
        "contract_end_date": "2026-06-30",
        "notes": "  ",
        "added_retroactively": None,
    }
    values.update(overrides)
    return ContractFormData(**values)


class TestCommission:
    def test_basic_percentage(self):
        assert compute_commission(Decimal("100000"), Decimal("5")) == Decimal("5000.00")

    def test_rounds_half_up_to_cents(self):
        # 12345.67 * 3.5% = 432.09845
        assert compute_commission(Decimal("12345.67"), Decimal("3.5")) == Decimal("432.10")
        # 0.10 * 5% = 0.005
        assert compute_commission(Decimal("0.10"), Decimal("5")) == Decimal("0.01")

    def test_accepts_plain_numbers(self):
        assert compute_commission(250000, 7.5) == Decimal("18750.00")


class TestActivity:
    def test_future_end_date_is_active(self):
        assert is_contract_active(date(2025, 12, 31), False, TODAY) is True

    def test_ending_today_is_still_active(self):
        assert is_contract_active(TODAY, False, TODAY) is True

    def test_past_end_date_is_inactive(self):
        assert is_contract_active(date(2024, 12, 31), False, TODAY) is False

    def test_retroactive_flag_wins(self):
        assert is_contract_active(date(2030, 1, 1), True, TODAY) is False

    def test_suggests_retroactive_only_for_unflagged_past_contracts(self):
        assert suggest_retroactive(date(2024, 12, 31), False, TODAY) is True
        assert suggest_retroactive(date(2024, 12, 31), True, TODAY) is False
        assert suggest_retroactive(TODAY, False, TODAY) is False
        assert suggest_retroactive(None, False, TODAY) is False


class TestParseContractForm:
    def test_valid_form(self):
        parsed = parse_contract_form(_form())
        assert isinstance(parsed, ParsedContractData)
        assert parsed.team_id == 1
        assert parsed.competition_id == 2
        assert parsed.contract_value == Decimal("100000.00")
        assert parsed.commission == Decimal("5000.00")
        assert parsed.notes is None
        assert parsed.added_retroactively is False

    def test_checkbox_values(self):
        assert parse_contract_form(_form(added_retroactively="on")).added_retroactively is True
        assert parse_contract_form(_form(added_retroactively="0")).added_retroactively is False

    def test_requires_team_and_competition(self):
        assert parse_contract_form(_form(team_id="")) == "Please select a team."
        assert parse_contract_form(_form(competition_id="x")) == "Please select a competition."

    def test_rejects_bad_numbers(self):
        assert parse_contract_form(_form(contract_value="lots")) == "Contract value must be a number."
        assert parse_contract_form(_form(contract_value="-1")) == "Contract value cannot be negative."
        assert parse_contract_form(_form(contract_value="NaN")) == "Contract value cannot be negative."
        assert (
            parse_contract_form(_form(commission_percentage="101"))
            == "Commission percentage must be between 0 and 100."
        )

    def test_end_must_follow_start(self):
        error = parse_contract_form(_form(contract_end_date="2025-01-01"))
        assert error == "End date must be after start date."

    def test_missing_dates(self):
        error = parse_contract_form(_form(contract_start_date=""))
        assert error == "Start and end dates are required (YYYY-MM-DD)."

    def test_defaults_echo_submitted_values(self):
        defaults = form_defaults_from_data(_form(team_id="", added_retroactively="1"))
        assert defaults["team_id"] is None
        assert defaults["competition_id"] == 2
        assert defaults["contract_value"] == "100000"
        assert defaults["added_retroactively"] is True
