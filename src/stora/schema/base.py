"""
Shared building blocks for every locally stored entity.

Each entity carries the same sync bookkeeping: a client-generated stable id,
the nullable server id, the owner partition, and the three sync flags.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar
from uuid import uuid4

from pydantic import BaseModel, Field

from stora.errors import ValidationError


def now_millis() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return int(time.time() * 1000)


def new_local_id() -> str:
    """Mint a stable client-side identifier."""
    return str(uuid4())


class Family(str, Enum):
    """Entity families reconciled independently."""

    INVENTORY = "inventory"
    LOANS = "loans"
    REMINDERS = "reminders"
    NOTIFICATIONS = "notifications"


@dataclass(frozen=True)
class Session:
    """The signed-in owner and the opaque bearer credential."""

    owner_id: int
    token: str

    def require(self) -> None:
        """Reject unauthenticated callers before any mutation."""
        if self.owner_id is None or self.owner_id < 0 or not self.token:
            raise ValidationError("Authentication required. Please login.")

    @property
    def auth_header(self) -> str:
        return f"Bearer {self.token}"


class SyncedEntity(BaseModel):
    """
    Base for entities that round-trip between the local and remote stores.

    Flag states produced by the helpers are either
    {needs_sync=False, is_synced=True} (clean) or
    {needs_sync=True, is_synced=False} (pending).
    """

    family: ClassVar[Family]

    id: str = Field(default_factory=new_local_id)
    remote_id: int | None = None
    owner_id: int = -1

    needs_sync: bool = True
    is_synced: bool = False
    is_deleted: bool = False
    last_modified: int = Field(default_factory=now_millis)

    model_config = {"frozen": False}

    def mark_dirty(self) -> None:
        """Queue this row for the next push."""
        self.needs_sync = True
        self.is_synced = False
        self.last_modified = now_millis()

    def mark_clean(self, remote_id: int | None = None) -> None:
        """Record a successful push, optionally storing the assigned server id."""
        if remote_id is not None:
            self.remote_id = remote_id
        self.needs_sync = False
        self.is_synced = True

    def soft_delete(self) -> None:
        """First phase of deletion: tombstone and queue."""
        self.is_deleted = True
        self.mark_dirty()

    def content(self) -> dict[str, Any]:
        """Comparable snapshot that ignores the modification stamp."""
        return self.model_dump(exclude={"last_modified"})
