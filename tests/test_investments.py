"""Tests for price resolution, caching, rate limiting and investment valuation."""

from __future__ import annotations

import json
from datetime import timedelta

import pytest
import requests

from pocketledger.errors import InvalidPriceError, PriceSourceError, RateLimitedError, ValidationError
from pocketledger.models import Account
from pocketledger.services.investments import (
    AlphaVantagePriceSource,
    InvestmentService,
    PriceCache,
    calculate_investment_values,
)
from tests.conftest import START, USER_ID, assert_float_equal


def _investment(shares: float, invested: float, symbol: str = "VOO") -> Account:
    return Account(
        id="acc-inv",
        user_id=USER_ID,
        name="Brokerage",
        type="investment",
        stock_symbol=symbol,
        shares=shares,
        invested_amount=invested,
    )


class BrokenFetchRepository:
    def last_fetch(self, symbol):
        raise RuntimeError("fetch table unavailable")

    def record_fetch(self, symbol, fetched_at):
        raise RuntimeError("fetch table unavailable")


class TestCalculateValues:
    def test_gain(self):
        values = calculate_investment_values(_investment(10, 1000.0), 120.0)

        assert_float_equal(values.total_value, 1200.0)
        assert_float_equal(values.gains_absolute, 200.0)
        assert_float_equal(values.gains_pct, 20.0)

    def test_loss(self):
        values = calculate_investment_values(_investment(4, 1000.0), 200.0)

        assert_float_equal(values.gains_absolute, -200.0)
        assert_float_equal(values.gains_pct, -20.0)

    def test_nothing_invested_has_zero_pct(self):
        values = calculate_investment_values(_investment(2, 0.0), 50.0)

        assert values.total_value == 100.0
        assert values.gains_pct == 0.0


class TestPriceResolution:
    def test_first_lookup_hits_upstream_then_cache(self, ledger, price_source):
        assert ledger.investments.get_current_price("voo") == 400.0
        assert ledger.investments.get_current_price(" VOO ") == 400.0

        assert price_source.calls == ["VOO"]
        assert ledger.investments.price_timestamp("VOO") == START

    def test_ttl_boundary(self, ledger, price_source, clock):
        ledger.investments.get_current_price("VOO")
        price_source.prices["VOO"] = 410.0

        clock.advance(minutes=15, milliseconds=-1)
        assert ledger.investments.get_current_price("VOO") == 400.0
        assert price_source.calls == ["VOO"]

        clock.advance(milliseconds=1)
        assert ledger.investments.get_current_price("VOO") == 410.0
        assert price_source.calls == ["VOO", "VOO"]

    def test_shared_tier_serves_other_clients(self, ledger, price_source, clock):
        ledger.investments.get_current_price("VOO")
        clock.advance(minutes=5)
        ledger.investments.clear_local_cache()

        assert ledger.investments.get_current_price("VOO") == 400.0
        assert price_source.calls == ["VOO"]
        # Shared hit repopulates the local tier with the shared row's timestamp
        assert ledger.investments.price_timestamp("VOO") == START

    def test_force_refresh_is_rate_limited(self, ledger, price_source, clock):
        ledger.investments.get_current_price("VOO")
        clock.advance(minutes=10)

        with pytest.raises(RateLimitedError) as excinfo:
            ledger.investments.force_refresh_price("VOO")

        assert excinfo.value.symbol == "VOO"
        assert excinfo.value.retry_after == timedelta(minutes=5)
        assert excinfo.value.kind == "rate_limited"
        assert price_source.calls == ["VOO"]

    def test_force_refresh_after_window(self, ledger, price_source, clock):
        ledger.investments.get_current_price("VOO")
        price_source.prices["VOO"] = 420.0
        clock.advance(minutes=15)

        assert ledger.investments.force_refresh_price("VOO") == 420.0
        assert ledger.investments.price_timestamp("VOO") == clock.now

    def test_rate_limit_is_global_across_local_caches(self, ledger, price_source, clock):
        ledger.investments.get_current_price("VOO")
        clock.advance(minutes=16)
        other_client = InvestmentService(
            cache=PriceCache(),
            source=price_source,
            stock_price_repo=ledger.stock_price_repo,
            fetch_repo=ledger.fetch_repo,
            cache_ttl=timedelta(minutes=30),
            rate_limit_window=timedelta(minutes=20),
            clock=clock,
        )

        # Shared row is still fresh for this client's longer TTL
        assert other_client.get_current_price("VOO") == 400.0
        with pytest.raises(RateLimitedError):
            other_client.force_refresh_price("VOO")

    def test_rate_limit_fails_open(self, ledger, price_source, clock):
        service = InvestmentService(
            cache=PriceCache(),
            source=price_source,
            stock_price_repo=ledger.stock_price_repo,
            fetch_repo=BrokenFetchRepository(),
            clock=clock,
        )

        assert service.force_refresh_price("VOO") == 400.0
        assert service.force_refresh_price("VOO") == 400.0
        assert price_source.calls == ["VOO", "VOO"]

    @pytest.mark.parametrize("bad_price", [0, -1.0, float("nan"), float("inf"), None, "400"])
    def test_invalid_prices_are_never_cached(self, ledger, price_source, bad_price):
        price_source.prices["VOO"] = bad_price

        with pytest.raises(InvalidPriceError):
            ledger.investments.get_current_price("VOO")

        assert "VOO" not in ledger.investments.cache
        assert ledger.stock_price_repo.get("VOO") is None

    def test_source_errors_propagate(self, ledger, price_source):
        price_source.error = PriceSourceError("upstream down")

        with pytest.raises(PriceSourceError):
            ledger.investments.get_current_price("VOO")

    def test_empty_symbol_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.investments.get_current_price("  ")

    def test_prune_shared_cache(self, ledger, clock):
        ledger.investments.get_current_price("VOO")
        clock.advance(minutes=20)

        assert ledger.investments.prune_shared_cache() == 1
        assert ledger.stock_price_repo.get("VOO") is None


class TestUpdateInvestmentAccount:
    def test_values_account_from_movements(self, ledger, account_factory, price_source):
        price_source.prices["VOO"] = 120.0
        account = account_factory("Brokerage", "USD", account_type="investment")
        pockets = {p.name: p for p in ledger.accounts.list_pockets(account.id)}
        ledger.movements.create_movement("IncomeNormal", account.id, pockets["Invested Money"].id, 1000.0)
        ledger.movements.create_movement("IncomeNormal", account.id, pockets["Shares"].id, 10.0)

        valuation = ledger.investments.update_investment_account(ledger.accounts.get_account(account.id))

        assert valuation.symbol == "VOO"
        assert_float_equal(valuation.total_value, 1200.0)
        assert_float_equal(valuation.gains_absolute, 200.0)
        assert_float_equal(valuation.gains_pct, 20.0)
        assert valuation.last_updated == START

    def test_requires_symbol(self, ledger):
        with pytest.raises(ValidationError):
            ledger.investments.update_investment_account(_investment(1, 1, symbol=None))


class TestPriceCache:
    def test_persists_between_instances(self, tmp_path):
        path = tmp_path / "cache" / "prices.json"
        PriceCache(path).put("VOO", 401.5, START)

        reloaded = PriceCache(path)

        entry = reloaded.get("VOO")
        assert entry.price == 401.5
        assert entry.timestamp == START
        assert len(reloaded) == 1

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "prices.json"
        path.write_text("{not json", encoding="utf-8")

        cache = PriceCache(path)

        assert len(cache) == 0
        cache.put("VOO", 1.0, START)
        assert json.loads(path.read_text(encoding="utf-8"))["VOO"]["price"] == 1.0

    def test_get_fresh_boundary(self):
        cache = PriceCache()
        cache.put("VOO", 1.0, START)
        ttl = timedelta(minutes=15)

        assert cache.get_fresh("VOO", START + ttl - timedelta(milliseconds=1), ttl) is not None
        assert cache.get_fresh("VOO", START + ttl, ttl) is None


class FakeResponse:
    def __init__(self, payload=None, status_error=None, json_error=None):
        self.payload = payload
        self.status_error = status_error
        self.json_error = json_error

    def raise_for_status(self):
        if self.status_error is not None:
            raise self.status_error

    def json(self):
        if self.json_error is not None:
            raise self.json_error
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        if self.error is not None:
            raise self.error
        return self.response


class TestAlphaVantagePriceSource:
    def _source(self, session):
        return AlphaVantagePriceSource(
            api_key="key", base_url="https://example.test/query", timeout=3.0, session=session
        )

    def test_parses_global_quote(self):
        session = FakeSession(FakeResponse({"Global Quote": {"01. symbol": "VOO", "05. price": "432.1000"}}))

        assert self._source(session).fetch_price("VOO") == 432.1
        url, params, timeout = session.requests[0]
        assert url == "https://example.test/query"
        assert params == {"function": "GLOBAL_QUOTE", "symbol": "VOO", "apikey": "key"}
        assert timeout == 3.0

    @pytest.mark.parametrize(
        "payload",
        [
            {"Error Message": "Invalid API call"},
            {"Note": "Thank you for using Alpha Vantage! Our standard API call frequency is 5 calls per minute."},
            {"Information": "The demo API key is for demo purposes only."},
            {"Global Quote": {}},
            {},
            ["not", "a", "dict"],
        ],
    )
    def test_error_payloads(self, payload):
        with pytest.raises(PriceSourceError):
            self._source(FakeSession(FakeResponse(payload))).fetch_price("VOO")

    def test_unparsable_price(self):
        session = FakeSession(FakeResponse({"Global Quote": {"05. price": "n/a"}}))
        with pytest.raises(InvalidPriceError):
            self._source(session).fetch_price("VOO")

    @pytest.mark.parametrize(
        "session",
        [
            FakeSession(error=requests.exceptions.Timeout("slow")),
            FakeSession(error=requests.exceptions.ConnectionError("offline")),
            FakeSession(FakeResponse(status_error=requests.exceptions.HTTPError("503"))),
            FakeSession(FakeResponse(json_error=ValueError("bad json"))),
        ],
    )
    def test_transport_errors(self, session):
        with pytest.raises(PriceSourceError):
            self._source(session).fetch_price("VOO")
