"""
In-memory dictionary store.

Fast, ephemeral storage used by tests and short-lived sessions.
"""

from __future__ import annotations

from stora.schema.base import Family, SyncedEntity
from stora.storage.base import BaseStore


class DictStore(BaseStore):
    """
    In-memory dictionary-based local store.

    Rows are copied on the way in and out so callers never share state with
    the store; a change is only visible after ``upsert``.
    """

    def __init__(self):
        self._rows: dict[Family, dict[str, SyncedEntity]] = {family: {} for family in Family}

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def get(self, family: Family, local_id: str) -> SyncedEntity | None:
        row = self._rows[family].get(local_id)
        return row.model_copy(deep=True) if row else None

    async def get_by_remote_id(
        self,
        family: Family,
        owner_id: int,
        remote_id: int,
    ) -> SyncedEntity | None:
        for row in self._rows[family].values():
            if row.owner_id == owner_id and row.remote_id == remote_id:
                return row.model_copy(deep=True)
        return None

    async def upsert(self, entity: SyncedEntity) -> SyncedEntity:
        if entity.family == Family.LOANS:
            entity.attach_items()
        self._rows[entity.family][entity.id] = entity.model_copy(deep=True)
        return entity

    async def purge(self, family: Family, local_id: str) -> bool:
        # Loan items live inside the loan row and go with it
        return self._rows[family].pop(local_id, None) is not None

    async def list(
        self,
        family: Family,
        owner_id: int,
        include_deleted: bool = False,
    ) -> list[SyncedEntity]:
        rows = [
            row.model_copy(deep=True)
            for row in self._rows[family].values()
            if row.owner_id == owner_id and (include_deleted or not row.is_deleted)
        ]
        rows.sort(key=lambda r: r.last_modified)
        return rows
