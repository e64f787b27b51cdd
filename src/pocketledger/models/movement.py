"""SQLModel definition for ledger movements."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from .common import MovementType, new_id, utcnow


class Movement(SQLModel, table=True):
    """A single income or expense event against one pocket or sub-pocket.

    Account, pocket and sub-pocket are referenced by id without foreign keys:
    movements outlive their targets as orphans. The ``orphaned_*`` snapshot
    fields hold the names captured at orphaning time so a recreated account
    or pocket can be matched by name and currency instead of id.
    """

    __tablename__: ClassVar[str] = "movement"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    user_id: int = Field(nullable=False, index=True)
    type: str = Field(nullable=False, max_length=16)
    account_id: str = Field(nullable=False, index=True, max_length=32)
    pocket_id: str = Field(nullable=False, index=True, max_length=32)
    sub_pocket_id: Optional[str] = Field(default=None, index=True, max_length=32)
    amount: float = Field(nullable=False, description="Always positive; the type gives the sign")
    notes: Optional[str] = Field(default=None, max_length=500)
    displayed_date: datetime = Field(default_factory=utcnow, nullable=False, index=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    is_pending: bool = Field(default=False, nullable=False, index=True)
    is_orphaned: bool = Field(default=False, nullable=False, index=True)

    orphaned_account_name: Optional[str] = Field(default=None, max_length=128)
    orphaned_account_currency: Optional[str] = Field(default=None, max_length=3)
    orphaned_pocket_name: Optional[str] = Field(default=None, max_length=128)

    @property
    def is_income(self) -> bool:
        return MovementType(self.type).is_income

    @property
    def is_applied(self) -> bool:
        """True when the amount is currently reflected in a balance."""
        return not self.is_pending and not self.is_orphaned

    @property
    def signed_amount(self) -> float:
        return self.amount if self.is_income else -self.amount
