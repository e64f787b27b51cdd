"""Tests for fixed-expense schedule math and sub-pocket management."""

from __future__ import annotations

import pytest

from pocketledger.errors import NotFoundError, ValidationError
from pocketledger.models import SubPocket
from pocketledger.services.sub_pockets import (
    is_name_unique,
    monthly_contribution,
    next_payment_due,
    progress_ratio,
)
from tests.conftest import USER_ID, assert_float_equal


def _rent(balance: float, value_total: float = 1200.0, periodicity_months: int = 12) -> SubPocket:
    return SubPocket(
        id="sp-rent",
        user_id=USER_ID,
        pocket_id="p-fixed",
        name="Rent",
        value_total=value_total,
        periodicity_months=periodicity_months,
        balance=balance,
    )


class TestScheduleMath:
    def test_monthly_contribution(self):
        assert monthly_contribution(1200.0, 12) == 100.0
        assert monthly_contribution(1200.0, 0) == 0.0

    @pytest.mark.parametrize(
        "balance,expected",
        [
            (0.0, 100.0),
            (500.0, 100.0),
            (-50.0, 150.0),
            (1150.0, 50.0),
            (1100.0, 100.0),
            (1200.0, 0.0),
            (1300.0, 0.0),
        ],
    )
    def test_next_payment_due(self, balance, expected):
        assert_float_equal(next_payment_due(_rent(balance)), expected)

    def test_progress_ratio_is_unclamped(self):
        assert progress_ratio(600.0, 1200.0) == 0.5
        assert progress_ratio(-120.0, 1200.0) == -0.1
        assert progress_ratio(1800.0, 1200.0) == 1.5
        assert progress_ratio(10.0, 0.0) == 0.0

    def test_name_uniqueness_ignores_case_and_whitespace(self):
        siblings = [_rent(0.0)]
        assert not is_name_unique(" Rent ", siblings)
        assert not is_name_unique("rent", siblings)
        assert is_name_unique("Rent", siblings, exclude_id="sp-rent")
        assert is_name_unique("Insurance", siblings)


class TestSubPocketService:
    def test_create_and_schedule(self, ledger, fixed_setup):
        _, pocket, rent = fixed_setup

        schedule = ledger.sub_pockets.schedule(rent)

        assert rent.name == "Rent"
        assert rent.enabled is True
        assert schedule.monthly_contribution == 100.0
        assert schedule.next_payment_due == 100.0
        assert schedule.remaining == 1200.0
        assert ledger.sub_pockets.next_payment_due(rent.id) == 100.0

    def test_duplicate_name_rejected(self, ledger, fixed_setup):
        _, pocket, _ = fixed_setup
        with pytest.raises(ValidationError):
            ledger.sub_pockets.create_sub_pocket(pocket.id, "  rent ", 50.0, 1)

    @pytest.mark.parametrize(
        "name,value_total,periodicity",
        [("", 10.0, 1), ("Gym", 0.0, 1), ("Gym", -3.0, 1), ("Gym", 10.0, 0), ("Gym", 10.0, 1.5)],
    )
    def test_invalid_values_rejected(self, ledger, fixed_setup, name, value_total, periodicity):
        _, pocket, _ = fixed_setup
        with pytest.raises(ValidationError):
            ledger.sub_pockets.create_sub_pocket(pocket.id, name, value_total, periodicity)

    def test_only_fixed_pockets_hold_sub_pockets(self, ledger, checking):
        _, pocket = checking
        with pytest.raises(ValidationError):
            ledger.sub_pockets.create_sub_pocket(pocket.id, "Gym", 30.0, 1)

    def test_monthly_total_skips_disabled(self, ledger, fixed_setup, sub_pocket_factory):
        _, pocket, rent = fixed_setup
        sub_pocket_factory(pocket, "Insurance", 600.0, 6)
        assert_float_equal(ledger.sub_pockets.total_monthly_fixed_expenses(pocket.id), 200.0)

        toggled = ledger.sub_pockets.toggle_enabled(rent.id)

        assert toggled.enabled is False
        assert_float_equal(ledger.sub_pockets.total_monthly_fixed_expenses(pocket.id), 100.0)

    def test_rename_to_own_name_is_allowed(self, ledger, fixed_setup, sub_pocket_factory):
        _, pocket, rent = fixed_setup
        sub_pocket_factory(pocket, "Insurance", 600.0, 6)

        assert ledger.sub_pockets.update_sub_pocket(rent.id, {"name": "RENT"}).name == "RENT"
        with pytest.raises(ValidationError):
            ledger.sub_pockets.update_sub_pocket(rent.id, {"name": "insurance"})

    def test_balance_cannot_be_edited_directly(self, ledger, fixed_setup):
        _, _, rent = fixed_setup
        with pytest.raises(ValidationError):
            ledger.sub_pockets.update_sub_pocket(rent.id, {"balance": 10.0})

    def test_groups(self, ledger, fixed_setup):
        _, pocket, rent = fixed_setup
        group = ledger.sub_pockets.create_group("Housing")

        moved = ledger.sub_pockets.move_to_group(rent.id, group.id)
        assert moved.group_id == group.id

        assert ledger.sub_pockets.delete_group(group.id) == 1
        assert ledger.sub_pockets.get_sub_pocket(rent.id).group_id is None
        assert ledger.sub_pockets.list_groups() == []

    def test_unknown_group_rejected(self, ledger, fixed_setup):
        _, _, rent = fixed_setup
        with pytest.raises(NotFoundError):
            ledger.sub_pockets.move_to_group(rent.id, "missing")

    def test_delete_sub_pocket_keeps_its_movements(self, ledger, fixed_setup):
        account, pocket, rent = fixed_setup
        movement = ledger.movements.create_movement(
            "IncomeFixed", account.id, pocket.id, 40.0, sub_pocket_id=rent.id
        )

        ledger.sub_pockets.delete_sub_pocket(rent.id)

        assert ledger.sub_pockets.list_sub_pockets(pocket.id) == []
        assert ledger.movements.get_movement(movement.id).sub_pocket_id == rent.id
        with pytest.raises(NotFoundError):
            ledger.sub_pockets.get_sub_pocket(rent.id)
