"""Shared plumbing for the foreground repositories."""

from __future__ import annotations

from typing import Any

from stora.schema.base import Family, Session
from stora.storage.base import BaseStore


class Repository:
    """
    Offline-first operations for one signed-in owner.

    ``remote`` and ``connectivity`` may be None for a purely local session.
    """

    family: Family

    def __init__(
        self,
        session: Session,
        store: BaseStore,
        remote: Any = None,
        connectivity: Any = None,
    ):
        self.session = session
        self.store = store
        self.remote = remote
        self.connectivity = connectivity

    @property
    def owner_id(self) -> int:
        return self.session.owner_id

    async def is_online(self) -> bool:
        if self.remote is None or self.connectivity is None:
            return False
        return await self.connectivity.is_reachable()

    async def unsynced_count(self) -> int:
        return await self.store.unsynced_count(self.family, self.owner_id)
