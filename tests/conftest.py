"""Pytest configuration and shared fixtures for PocketLedger tests.

Every test gets its own database and data directory, so the price cache file,
log files and SQLite rows never leak between tests or into a real install.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from sqlmodel import create_engine

from pocketledger.config import TestConfig
from pocketledger.context import create_ledger_context
from pocketledger.infra.database import create_session_factory, init_database
from pocketledger.models import Account, Pocket, SubPocket

USER_ID = 1
START = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable stand-in for ``utcnow``."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakePriceSource:
    """Upstream quote source returning canned prices and counting calls."""

    def __init__(self, prices: Optional[dict[str, object]] = None):
        self.prices: dict[str, object] = dict(prices or {"VOO": 400.0})
        self.calls: list[str] = []
        self.error: Optional[Exception] = None

    def fetch_price(self, symbol: str):
        self.calls.append(symbol)
        if self.error is not None:
            raise self.error
        return self.prices[symbol]


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """Create an isolated SQLite database file for each test."""
    engine = create_engine(f"sqlite:///{tmp_path / 'ledger.db'}", echo=False)
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Transactional session factory matching the repositories' expectations."""
    return create_session_factory(db_engine)


# =============================================================================
# Ledger Fixtures
# =============================================================================


@pytest.fixture
def config(tmp_path, monkeypatch) -> TestConfig:
    """Test configuration rooted in the test's temporary directory."""
    monkeypatch.setenv("POCKETLEDGER_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("POCKETLEDGER_DATABASE_URL", raising=False)
    monkeypatch.delenv("POCKETLEDGER_PRICE_CACHE_TTL_MINUTES", raising=False)
    monkeypatch.delenv("POCKETLEDGER_PRICE_RATE_LIMIT_MINUTES", raising=False)
    return TestConfig()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def price_source() -> FakePriceSource:
    return FakePriceSource()


@pytest.fixture
def ledger(config, price_source, clock):
    """Fully wired ledger context over an in-memory database."""
    ctx = create_ledger_context(
        config, user_id=USER_ID, price_source=price_source, clock=clock, configure_logging=False
    )
    yield ctx
    ctx.engine.dispose()


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def account_factory(ledger):
    """Factory for creating accounts through the account service."""

    def _create_account(
        name: str = "Checking",
        currency: str = "USD",
        account_type: str = "normal",
        color: str = "#3b82f6",
        stock_symbol: Optional[str] = None,
    ) -> Account:
        return ledger.accounts.create_account(
            name, color, currency, account_type=account_type, stock_symbol=stock_symbol
        )

    return _create_account


@pytest.fixture
def pocket_factory(ledger):
    """Factory for creating pockets inside an existing account."""

    def _create_pocket(account: Account, name: str = "Daily", pocket_type: str = "normal") -> Pocket:
        return ledger.accounts.create_pocket(account.id, name, pocket_type=pocket_type)

    return _create_pocket


@pytest.fixture
def sub_pocket_factory(ledger):
    """Factory for creating sub-pockets inside a fixed pocket."""

    def _create_sub_pocket(
        pocket: Pocket,
        name: str = "Rent",
        value_total: float = 1200.0,
        periodicity_months: int = 12,
        group_id: Optional[str] = None,
    ) -> SubPocket:
        return ledger.sub_pockets.create_sub_pocket(
            pocket.id, name, value_total, periodicity_months, group_id=group_id
        )

    return _create_sub_pocket


@pytest.fixture
def checking(account_factory, pocket_factory):
    """A USD account with a single normal pocket."""
    account = account_factory("Checking", "USD")
    pocket = pocket_factory(account, "Daily")
    return account, pocket


@pytest.fixture
def fixed_setup(account_factory, pocket_factory, sub_pocket_factory):
    """An account holding the fixed expenses pocket with a "Rent" sub-pocket."""
    account = account_factory("Bills", "USD")
    pocket = pocket_factory(account, "Fixed Expenses", pocket_type="fixed")
    rent = sub_pocket_factory(pocket, "Rent", 1200.0, 12)
    return account, pocket, rent


# =============================================================================
# Helper Functions
# =============================================================================


def assert_float_equal(actual: float, expected: float, tolerance: float = 0.01):
    """Assert that two floats are equal within a tolerance (default one cent)."""
    assert (
        abs(actual - expected) < tolerance
    ), f"Expected {expected}, got {actual} (diff: {abs(actual - expected)})"
