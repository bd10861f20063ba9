"""
Base storage interface for the local store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from stora.schema.base import Family, SyncedEntity
from stora.schema.inventory import InventoryItem
from stora.schema.loan import Loan
from stora.schema.reminder import NotificationHistoryEntry, ReminderSetting

ENTITY_TYPES: dict[Family, type[SyncedEntity]] = {
    Family.INVENTORY: InventoryItem,
    Family.LOANS: Loan,
    Family.REMINDERS: ReminderSetting,
    Family.NOTIFICATIONS: NotificationHistoryEntry,
}


def _matches(
    entry: NotificationHistoryEntry,
    day_start: int,
    day_end: int,
    related_reminder_id: str | None,
    server_reminder_id: int | None,
    title: str | None,
    message: str | None,
) -> bool:
    if not day_start <= entry.fired_at <= day_end:
        return False
    if related_reminder_id is not None and entry.related_reminder_id != related_reminder_id:
        return False
    if server_reminder_id is not None and entry.server_reminder_id != server_reminder_id:
        return False
    if title is not None and entry.title != title:
        return False
    if message is not None and entry.message != message:
        return False
    return True


class BaseStore(ABC):
    """
    Abstract base class for local storage backends.

    Rows are partitioned by entity family and owner. A loan is stored
    together with its line items; replacing or purging the loan replaces or
    purges the items as well.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the storage backend (create tables, indexes, etc.)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the storage backend and cleanup resources."""
        pass

    # CRUD operations
    @abstractmethod
    async def get(self, family: Family, local_id: str) -> SyncedEntity | None:
        """Retrieve a row by its local id, deleted or not."""
        pass

    @abstractmethod
    async def get_by_remote_id(
        self,
        family: Family,
        owner_id: int,
        remote_id: int,
    ) -> SyncedEntity | None:
        """Retrieve the owner's row mapped to a server id, deleted or not."""
        pass

    @abstractmethod
    async def upsert(self, entity: SyncedEntity) -> SyncedEntity:
        """Insert or replace a row by local id."""
        pass

    @abstractmethod
    async def purge(self, family: Family, local_id: str) -> bool:
        """Physically remove a row. Returns True if a row was removed."""
        pass

    @abstractmethod
    async def list(
        self,
        family: Family,
        owner_id: int,
        include_deleted: bool = False,
    ) -> list[SyncedEntity]:
        """List the owner's rows, oldest modification first."""
        pass

    # Sync queries
    async def pending(self, family: Family, owner_id: int) -> list[SyncedEntity]:
        """Rows queued for push, including soft-deleted ones."""
        rows = await self.list(family, owner_id, include_deleted=True)
        return [row for row in rows if row.needs_sync]

    async def with_remote_id(self, family: Family, owner_id: int) -> list[SyncedEntity]:
        """Live rows that have been acknowledged by the server."""
        rows = await self.list(family, owner_id)
        return [row for row in rows if row.remote_id is not None]

    async def unsynced_count(self, family: Family, owner_id: int) -> int:
        return len(await self.pending(family, owner_id))

    async def code_exists(
        self,
        owner_id: int,
        code: str,
        exclude_id: str | None = None,
    ) -> bool:
        """Whether a live inventory item of this owner already uses ``code``."""
        rows = await self.list(Family.INVENTORY, owner_id)
        return any(row.code == code and row.id != exclude_id for row in rows)

    # Notification history lookups
    async def find_notification(
        self,
        owner_id: int,
        day_start: int,
        day_end: int,
        *,
        related_reminder_id: str | None = None,
        server_reminder_id: int | None = None,
        title: str | None = None,
        message: str | None = None,
    ) -> NotificationHistoryEntry | None:
        """
        First live history entry fired inside ``[day_start, day_end]`` that
        matches every given criterion.
        """
        rows = await self.list(Family.NOTIFICATIONS, owner_id)
        for entry in rows:
            if _matches(
                entry, day_start, day_end,
                related_reminder_id, server_reminder_id, title, message,
            ):
                return entry
        return None

    async def purge_local_notifications(
        self,
        owner_id: int,
        day_start: int,
        day_end: int,
        *,
        related_reminder_id: str | None = None,
        server_reminder_id: int | None = None,
        title: str | None = None,
        message: str | None = None,
    ) -> int:
        """Purge entries not yet confirmed by the server that match every given criterion."""
        rows = await self.list(Family.NOTIFICATIONS, owner_id, include_deleted=True)
        count = 0
        for entry in rows:
            if entry.remote_id is not None:
                continue
            if _matches(
                entry, day_start, day_end,
                related_reminder_id, server_reminder_id, title, message,
            ):
                if await self.purge(Family.NOTIFICATIONS, entry.id):
                    count += 1
        return count
