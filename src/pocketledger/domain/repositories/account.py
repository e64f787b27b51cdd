"""Account repository protocol."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from ...models.account import Account


class AccountRepository(Protocol):
    """Repository for managing account entities."""

    def get_by_id(self, account_id: str, *, user_id: int) -> Optional[Account]:
        """Retrieve an account by ID."""
        ...

    def get_by_name(self, name: str, currency: str, *, user_id: int) -> Optional[Account]:
        """Retrieve an account by exact name and currency."""
        ...

    def list_all(self, *, user_id: int) -> list[Account]:
        """List all accounts."""
        ...

    def create(self, account: Account, *, user_id: int) -> Account:
        """Create a new account."""
        ...

    def update(self, account_id: str, updates: Mapping[str, Any], *, user_id: int) -> Optional[Account]:
        """Partially update an account."""
        ...

    def delete(self, account_id: str, *, user_id: int) -> None:
        """Delete an account by ID."""
        ...
