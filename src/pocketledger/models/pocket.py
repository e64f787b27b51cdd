"""Pocket model: a named subdivision of an account."""

from __future__ import annotations

from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from .common import Currency, PocketType, new_id


class Pocket(SQLModel, table=True):
    """Spending pocket. ``fixed`` pockets aggregate sub-pockets."""

    __tablename__: ClassVar[str] = "pocket"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    user_id: int = Field(nullable=False, index=True)
    account_id: str = Field(foreign_key="account.id", nullable=False, index=True, max_length=32)
    name: str = Field(nullable=False, max_length=128)
    type: str = Field(default=PocketType.NORMAL.value, max_length=16)
    balance: float = Field(default=0.0)
    currency: str = Field(default=Currency.USD.value, max_length=3)
    display_order: Optional[int] = Field(default=None)

    @property
    def is_fixed(self) -> bool:
        return self.type == PocketType.FIXED
