"""Protocols for the shared price cache and global fetch record."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol

from ...models.price import StockPrice


class StockPriceRepository(Protocol):
    """Database-level price cache shared by all clients."""

    def get(self, symbol: str) -> Optional[StockPrice]:
        ...

    def save(self, stock_price: StockPrice) -> StockPrice:
        """Upsert the row for the price's symbol."""
        ...

    def delete_expired(self, older_than: datetime) -> int:
        ...


class PriceFetchRepository(Protocol):
    """Global rate-limit record: last upstream fetch per symbol."""

    def last_fetch(self, symbol: str) -> Optional[datetime]:
        ...

    def record_fetch(self, symbol: str, fetched_at: datetime) -> None:
        ...
