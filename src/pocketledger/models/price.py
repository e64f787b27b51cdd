"""Shared price cache and global rate-limit tables."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from .common import utcnow


class StockPrice(SQLModel, table=True):
    """Latest known price per symbol, shared by every client of the database."""

    __tablename__: ClassVar[str] = "stock_price"

    symbol: str = Field(primary_key=True, max_length=16)
    price: float = Field(nullable=False)
    currency: str = Field(default="USD", max_length=3)
    market_state: Optional[str] = Field(default=None, max_length=16)
    cached_at: datetime = Field(default_factory=utcnow, nullable=False)


class PriceFetchRecord(SQLModel, table=True):
    """One row per symbol recording the last upstream fetch (global rate limit)."""

    __tablename__: ClassVar[str] = "price_fetch_record"

    symbol: str = Field(primary_key=True, max_length=16)
    fetched_at: datetime = Field(default_factory=utcnow, nullable=False)
