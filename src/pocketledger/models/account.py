"""Account model: the top-level money container."""

from __future__ import annotations

from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from .common import AccountType, Currency, new_id


class Account(SQLModel, table=True):
    """A named account in a single currency.

    The balance is not stored: it is always derived from the account's pockets
    (see ``AccountService.account_balance``). Investment accounts additionally
    mirror the balances of their "Invested Money" and "Shares" pockets into
    ``invested_amount`` and ``shares``.
    """

    __tablename__: ClassVar[str] = "account"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    user_id: int = Field(nullable=False, index=True)
    name: str = Field(nullable=False, max_length=128)
    color: str = Field(default="#3b82f6", max_length=16)
    currency: str = Field(default=Currency.USD.value, max_length=3)
    type: str = Field(default=AccountType.NORMAL.value, max_length=16)

    # Investment-only fields
    stock_symbol: Optional[str] = Field(default=None, max_length=16)
    invested_amount: float = Field(default=0.0)
    shares: float = Field(default=0.0)

    display_order: Optional[int] = Field(default=None)

    @property
    def is_investment(self) -> bool:
        return self.type == AccountType.INVESTMENT
