"""Sub-pocket and fixed-expense group models."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from .common import new_id, utcnow


class SubPocket(SQLModel, table=True):
    """A recurring fixed expense saved for inside a ``fixed`` pocket."""

    __tablename__: ClassVar[str] = "sub_pocket"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    user_id: int = Field(nullable=False, index=True)
    pocket_id: str = Field(foreign_key="pocket.id", nullable=False, index=True, max_length=32)
    name: str = Field(nullable=False, max_length=128)
    value_total: float = Field(nullable=False, description="Savings target for one period")
    periodicity_months: int = Field(nullable=False, description="Months the target is spread over")
    balance: float = Field(default=0.0)
    enabled: bool = Field(default=True, description="Disabled sub-pockets are left out of monthly totals")
    group_id: Optional[str] = Field(default=None, foreign_key="fixed_expense_group.id", max_length=32)
    display_order: Optional[int] = Field(default=None)


class FixedExpenseGroup(SQLModel, table=True):
    """Display grouping for sub-pockets; ``group_id=None`` means the default group."""

    __tablename__: ClassVar[str] = "fixed_expense_group"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    user_id: int = Field(nullable=False, index=True)
    name: str = Field(nullable=False, max_length=128)
    color: str = Field(default="#6b7280", max_length=16)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
