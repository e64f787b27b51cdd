"""Shared price cache and global fetch-record repositories.

Neither table is user-scoped: every client of the database shares the same
quotes and the same rate-limit window.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from sqlmodel import Session, select

from ...models.common import ensure_aware
from ...models.price import PriceFetchRecord, StockPrice


class SQLModelStockPriceRepository:
    """SQLModel-based shared stock price cache."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, symbol: str) -> Optional[StockPrice]:
        with self.session_factory() as session:
            row = session.get(StockPrice, symbol)
            if row is None:
                return None
            session.expunge(row)
            row.cached_at = ensure_aware(row.cached_at)
            return row

    def save(self, stock_price: StockPrice) -> StockPrice:
        """Insert or update the row for ``stock_price.symbol``."""
        with self.session_factory() as session:
            existing = session.get(StockPrice, stock_price.symbol)
            if existing:
                existing.price = stock_price.price
                existing.currency = stock_price.currency
                existing.market_state = stock_price.market_state
                existing.cached_at = stock_price.cached_at
                target = existing
            else:
                target = stock_price
            session.add(target)
            session.commit()
            session.refresh(target)
            session.expunge(target)
            return target

    def delete_expired(self, older_than: datetime) -> int:
        """Drop rows cached before ``older_than``; returns the number removed."""
        cutoff = ensure_aware(older_than)
        with self.session_factory() as session:
            rows = session.exec(select(StockPrice)).all()
            expired = [row for row in rows if ensure_aware(row.cached_at) < cutoff]
            for row in expired:
                session.delete(row)
            session.commit()
            return len(expired)


class SQLModelPriceFetchRepository:
    """Single timestamped row per symbol recording the last upstream fetch."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def last_fetch(self, symbol: str) -> Optional[datetime]:
        with self.session_factory() as session:
            record = session.get(PriceFetchRecord, symbol)
            return ensure_aware(record.fetched_at) if record else None

    def record_fetch(self, symbol: str, fetched_at: datetime) -> None:
        with self.session_factory() as session:
            record = session.get(PriceFetchRecord, symbol)
            if record:
                record.fetched_at = fetched_at
            else:
                record = PriceFetchRecord(symbol=symbol, fetched_at=fetched_at)
            session.add(record)
            session.commit()


__all__ = ["SQLModelPriceFetchRepository", "SQLModelStockPriceRepository"]
