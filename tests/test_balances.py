"""Tests for balance propagation onto pockets, sub-pockets and investment accounts."""

from __future__ import annotations

import logging

import pytest

from pocketledger.models import Movement, MovementType
from pocketledger.services.balances import apply_to_balance
from tests.conftest import USER_ID, assert_float_equal


@pytest.mark.parametrize(
    "balance,amount,is_income,expected",
    [
        (100.0, 25.0, True, 125.0),
        (100.0, 25.0, False, 75.0),
        (10.0, 25.0, False, -15.0),
        (-15.0, 5.0, False, -20.0),
    ],
)
def test_apply_to_balance_never_clamps(balance, amount, is_income, expected):
    assert apply_to_balance(balance, amount, is_income) == expected


def _movement(account_id, pocket_id, amount, movement_type, sub_pocket_id=None):
    return Movement(
        id="m-test",
        user_id=USER_ID,
        type=movement_type.value,
        account_id=account_id,
        pocket_id=pocket_id,
        sub_pocket_id=sub_pocket_id,
        amount=amount,
    )


def test_apply_and_revert_on_pocket(ledger, checking):
    account, pocket = checking
    income = _movement(account.id, pocket.id, 80.0, MovementType.INCOME_NORMAL)

    ledger.propagator.apply(income)
    assert_float_equal(ledger.accounts.get_pocket(pocket.id).balance, 80.0)

    ledger.propagator.revert(income)
    assert_float_equal(ledger.accounts.get_pocket(pocket.id).balance, 0.0)


def test_sub_pocket_movement_targets_sub_pocket_only(ledger, fixed_setup):
    account, pocket, rent = fixed_setup
    expense = _movement(account.id, pocket.id, 40.0, MovementType.EXPENSE_FIXED, sub_pocket_id=rent.id)

    ledger.propagator.apply(expense)

    assert_float_equal(ledger.sub_pockets.get_sub_pocket(rent.id).balance, -40.0)
    assert_float_equal(ledger.accounts.get_pocket(pocket.id).balance, 0.0)
    # Fixed pocket's effective balance is the sum of its sub-pockets
    assert_float_equal(ledger.accounts.pocket_balance(ledger.accounts.get_pocket(pocket.id)), -40.0)


def test_missing_holder_is_skipped_with_warning(ledger, checking, caplog):
    account, _ = checking
    ghost = _movement(account.id, "no-such-pocket", 10.0, MovementType.INCOME_NORMAL)

    with caplog.at_level(logging.WARNING, logger="pocketledger"):
        ledger.propagator.apply(ghost)

    assert any("holder missing" in record.getMessage() for record in caplog.records)


def test_sync_investment_account_mirrors_well_known_pockets(ledger, account_factory):
    account = account_factory("Brokerage", "USD", account_type="investment")
    pockets = {p.name: p for p in ledger.accounts.list_pockets(account.id)}

    ledger.movements.create_movement("IncomeNormal", account.id, pockets["Invested Money"].id, 1000.0)
    ledger.movements.create_movement("IncomeNormal", account.id, pockets["Shares"].id, 10.0)

    refreshed = ledger.accounts.get_account(account.id)
    assert_float_equal(refreshed.invested_amount, 1000.0)
    assert_float_equal(refreshed.shares, 10.0)


def test_sync_ignores_normal_accounts(ledger, checking):
    account, _ = checking
    synced = ledger.propagator.sync_investment_account(account.id)

    assert synced is not None
    assert synced.invested_amount == 0.0
    assert synced.shares == 0.0


def test_sync_leaves_field_when_pocket_missing(ledger, account_factory):
    account = account_factory("Brokerage", "USD", account_type="investment")
    shares_pocket = next(p for p in ledger.accounts.list_pockets(account.id) if p.name == "Shares")
    ledger.account_repo.update(account.id, {"shares": 3.0}, user_id=USER_ID)
    ledger.pocket_repo.delete(shares_pocket.id, user_id=USER_ID)

    synced = ledger.propagator.sync_investment_account(account.id)

    assert synced.shares == 3.0
