"""Pocket repository protocol."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from ...models.pocket import Pocket


class PocketRepository(Protocol):
    """Repository for managing pocket entities."""

    def get_by_id(self, pocket_id: str, *, user_id: int) -> Optional[Pocket]:
        ...

    def list_all(self, *, user_id: int) -> list[Pocket]:
        ...

    def list_by_account(self, account_id: str, *, user_id: int) -> list[Pocket]:
        ...

    def list_by_type(self, pocket_type: str, *, user_id: int) -> list[Pocket]:
        ...

    def create(self, pocket: Pocket, *, user_id: int) -> Pocket:
        ...

    def update(self, pocket_id: str, updates: Mapping[str, Any], *, user_id: int) -> Optional[Pocket]:
        ...

    def delete(self, pocket_id: str, *, user_id: int) -> None:
        ...
