"""Investment valuation: cached, globally rate-limited stock price lookups.

Price resolution walks a fixed chain and stops at the first answer:

1. the local cache (in memory, persisted to a JSON file), fresh for ``cache_ttl``;
2. the shared ``StockPrice`` table, fresh for the same window;
3. the global fetch record, which refuses an upstream call made within
   ``rate_limit_window`` of the previous one for the same symbol;
4. the upstream price source.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

import requests

from ..domain.repositories import PriceFetchRepository, StockPriceRepository
from ..errors import InvalidPriceError, PriceSourceError, RateLimitedError, ValidationError
from ..logging_config import get_logger
from ..models import Account, StockPrice
from ..models.common import ensure_aware, utcnow

logger = get_logger("services.investments")

Clock = Callable[[], datetime]


def normalize_symbol(symbol: str) -> str:
    cleaned = (symbol or "").strip().upper()
    if not cleaned:
        raise ValidationError("Stock symbol is required")
    return cleaned


def validate_price(symbol: str, price: Any) -> float:
    """Accept only finite, strictly positive numbers."""

    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise InvalidPriceError(f"Price for {symbol} is not a number: {price!r}")
    if not math.isfinite(price) or price <= 0:
        raise InvalidPriceError(f"Price for {symbol} must be a positive finite number, got {price!r}")
    return float(price)


class PriceSource(Protocol):
    """Upstream quote provider."""

    def fetch_price(self, symbol: str) -> float:
        ...


class AlphaVantagePriceSource:
    """Fetches the latest trade price from the Alpha Vantage GLOBAL_QUOTE endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://www.alphavantage.co/query",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_price(self, symbol: str) -> float:
        params = {"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": self.api_key}
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as exc:
            raise PriceSourceError(f"Price request for {symbol} timed out") from exc
        except requests.exceptions.RequestException as exc:
            raise PriceSourceError(f"Price request for {symbol} failed: {exc}") from exc
        except ValueError as exc:
            raise PriceSourceError(f"Price source returned invalid JSON for {symbol}") from exc

        if not isinstance(data, dict):
            raise PriceSourceError(f"Unexpected price payload for {symbol}")
        for key in ("Error Message", "Note", "Information"):
            if key in data:
                raise PriceSourceError(f"Price source refused {symbol}: {data[key]}")

        quote = data.get("Global Quote") or {}
        raw_price = quote.get("05. price")
        if not raw_price:
            raise PriceSourceError(f"No price data found for symbol: {symbol}")
        try:
            price = float(raw_price)
        except (TypeError, ValueError) as exc:
            raise InvalidPriceError(f"Unparsable price for {symbol}: {raw_price!r}") from exc
        return price


@dataclass(frozen=True)
class CacheEntry:
    price: float
    timestamp: datetime


class PriceCache:
    """Per-client price cache, kept in memory and mirrored to a JSON file.

    ``path=None`` keeps the cache purely in memory.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else None
        self._entries: dict[str, CacheEntry] = {}
        self._load()

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            self._entries = {
                symbol: CacheEntry(
                    price=float(entry["price"]),
                    timestamp=ensure_aware(datetime.fromisoformat(entry["timestamp"])),
                )
                for symbol, entry in raw.items()
            }
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            # Unreadable cache file: start empty, it is rebuilt on the next save
            logger.warning("Discarding unreadable price cache", extra={"path": str(self.path), "error": str(exc)})
            self._entries = {}

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            symbol: {"price": entry.price, "timestamp": entry.timestamp.isoformat()}
            for symbol, entry in self._entries.items()
        }
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def get(self, symbol: str) -> Optional[CacheEntry]:
        return self._entries.get(symbol)

    def get_fresh(self, symbol: str, now: datetime, ttl: timedelta) -> Optional[CacheEntry]:
        entry = self._entries.get(symbol)
        if entry is None or now - entry.timestamp >= ttl:
            return None
        return entry

    def put(self, symbol: str, price: float, timestamp: datetime) -> CacheEntry:
        entry = CacheEntry(price=price, timestamp=ensure_aware(timestamp))
        self._entries[symbol] = entry
        self._save()
        return entry

    def remove(self, symbol: str) -> None:
        if self._entries.pop(symbol, None) is not None:
            self._save()

    def clear(self) -> None:
        self._entries = {}
        self._save()

    def __contains__(self, symbol: str) -> bool:
        return symbol in self._entries

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class InvestmentValues:
    total_value: float
    gains_absolute: float
    gains_pct: float


@dataclass(frozen=True)
class InvestmentValuation:
    """Everything the summary needs to show one investment account."""

    symbol: str
    price: float
    total_value: float
    gains_absolute: float
    gains_pct: float
    last_updated: Optional[datetime]


def calculate_investment_values(account: Account, current_price: float) -> InvestmentValues:
    """Market value and gain of an account's shares at ``current_price``."""

    total_value = account.shares * current_price
    gains_absolute = total_value - account.invested_amount
    if account.invested_amount > 0:
        gains_pct = gains_absolute / account.invested_amount * 100
    else:
        gains_pct = 0.0
    return InvestmentValues(total_value=total_value, gains_absolute=gains_absolute, gains_pct=gains_pct)


class InvestmentService:
    """Resolves current prices and values investment accounts."""

    def __init__(
        self,
        *,
        cache: PriceCache,
        source: PriceSource,
        stock_price_repo: StockPriceRepository,
        fetch_repo: PriceFetchRepository,
        cache_ttl: timedelta = timedelta(minutes=15),
        rate_limit_window: timedelta = timedelta(minutes=15),
        clock: Clock = utcnow,
    ) -> None:
        self.cache = cache
        self.source = source
        self.stock_price_repo = stock_price_repo
        self.fetch_repo = fetch_repo
        self.cache_ttl = cache_ttl
        self.rate_limit_window = rate_limit_window
        self.clock = clock

    def get_current_price(self, symbol: str) -> float:
        return self._resolve(normalize_symbol(symbol), use_shared=True)

    def force_refresh_price(self, symbol: str) -> float:
        """Skip both cache tiers; the global rate limit still applies."""
        normalized = normalize_symbol(symbol)
        self.cache.remove(normalized)
        return self._resolve(normalized, use_shared=False)

    def price_timestamp(self, symbol: str) -> Optional[datetime]:
        entry = self.cache.get(normalize_symbol(symbol))
        return entry.timestamp if entry else None

    def clear_local_cache(self) -> None:
        self.cache.clear()
        logger.info("Local price cache cleared")

    def prune_shared_cache(self) -> int:
        """Drop shared price rows older than the cache TTL."""
        return self.stock_price_repo.delete_expired(self.clock() - self.cache_ttl)

    def _resolve(self, symbol: str, *, use_shared: bool) -> float:
        now = self.clock()

        entry = self.cache.get_fresh(symbol, now, self.cache_ttl)
        if entry is not None:
            logger.debug("Price cache hit", extra={"symbol": symbol, "tier": "local"})
            return entry.price

        if use_shared:
            shared = self._shared_price(symbol, now)
            if shared is not None:
                self.cache.put(symbol, shared.price, shared.cached_at)
                logger.debug("Price cache hit", extra={"symbol": symbol, "tier": "shared"})
                return shared.price

        logger.debug("Price cache miss", extra={"symbol": symbol})
        self._check_rate_limit(symbol, now)

        price = validate_price(symbol, self.source.fetch_price(symbol))
        self.cache.put(symbol, price, now)
        self._store_shared(symbol, price, now)
        self._record_fetch(symbol, now)
        logger.info("Price fetched from upstream", extra={"symbol": symbol, "price": price})
        return price

    def _shared_price(self, symbol: str, now: datetime) -> Optional[StockPrice]:
        try:
            row = self.stock_price_repo.get(symbol)
        except Exception as exc:
            logger.warning(
                "Shared price cache unavailable", extra={"symbol": symbol, "error": str(exc)}
            )
            return None
        if row is None or now - ensure_aware(row.cached_at) >= self.cache_ttl:
            return None
        return row

    def _check_rate_limit(self, symbol: str, now: datetime) -> None:
        try:
            last = self.fetch_repo.last_fetch(symbol)
        except Exception as exc:
            # Fail open: a broken limiter must not block price lookups
            logger.warning(
                "Rate limit check failed; allowing fetch",
                extra={"symbol": symbol, "error": str(exc)},
            )
            return
        if last is None:
            return
        elapsed = now - ensure_aware(last)
        if elapsed < self.rate_limit_window:
            retry_after = self.rate_limit_window - elapsed
            logger.warning(
                "Price fetch rate limited",
                extra={"symbol": symbol, "retry_after_seconds": retry_after.total_seconds()},
            )
            raise RateLimitedError(symbol, retry_after)

    def _store_shared(self, symbol: str, price: float, now: datetime) -> None:
        try:
            self.stock_price_repo.save(StockPrice(symbol=symbol, price=price, cached_at=now))
        except Exception as exc:
            logger.warning("Could not update shared price cache", extra={"symbol": symbol, "error": str(exc)})

    def _record_fetch(self, symbol: str, now: datetime) -> None:
        try:
            self.fetch_repo.record_fetch(symbol, now)
        except Exception as exc:
            logger.warning("Could not record price fetch", extra={"symbol": symbol, "error": str(exc)})

    def calculate_investment_values(self, account: Account, current_price: float) -> InvestmentValues:
        return calculate_investment_values(account, current_price)

    def update_investment_account(self, account: Account) -> InvestmentValuation:
        """Price an investment account and compute its gains."""
        if not account.stock_symbol:
            raise ValidationError(f"Account {account.name} has no stock symbol")
        symbol = normalize_symbol(account.stock_symbol)
        price = self.get_current_price(symbol)
        values = calculate_investment_values(account, price)
        return InvestmentValuation(
            symbol=symbol,
            price=price,
            total_value=values.total_value,
            gains_absolute=values.gains_absolute,
            gains_pct=values.gains_pct,
            last_updated=self.price_timestamp(symbol),
        )


__all__ = [
    "AlphaVantagePriceSource",
    "CacheEntry",
    "InvestmentService",
    "InvestmentValuation",
    "InvestmentValues",
    "PriceCache",
    "PriceSource",
    "calculate_investment_values",
    "normalize_symbol",
    "validate_price",
]
