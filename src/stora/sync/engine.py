"""
Sync engine base for STORA entity families.

Implements offline-first reconciliation:
- Push: queued local mutations go out one row at a time
- Pull: the full remote collection is fetched, then applied
- Local pending changes win over a concurrent pull
- One pass per family in flight; overlapping requests are coalesced
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

import pydantic

from stora.errors import RemoteRejectedError, TransportError, ValidationError
from stora.schema.base import Family, Session, SyncedEntity
from stora.schema.wire import WireModel
from stora.storage.base import BaseStore

logger = logging.getLogger(__name__)

# Bookkeeping that a pull never backfills
SYNC_FIELDS = frozenset(
    {"id", "remote_id", "owner_id", "needs_sync", "is_synced", "is_deleted", "last_modified"}
)

# Row-level failures: counted, logged, and the pass moves on
ROW_ERRORS = (TransportError, RemoteRejectedError, ValidationError)


class SyncState(Enum):
    """State of synchronization."""

    IDLE = "idle"
    SYNCING = "syncing"
    UPLOADING = "uploading"
    DOWNLOADING = "downloading"
    ERROR = "error"
    OFFLINE = "offline"


@dataclass
class SyncStatus:
    """Observable status of one family's engine."""

    state: SyncState = SyncState.IDLE
    last_sync: datetime | None = None
    pending_uploads: int = 0
    error_message: str = ""


@dataclass
class PushResult:
    succeeded: int = 0
    failed: int = 0
    offline: bool = False
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.failed == 0


@dataclass
class PullResult:
    synced: int = 0
    purged: int = 0
    offline: bool = False
    skipped: bool = False
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error


@dataclass
class SyncReport:
    """Outcome of one push-then-pull pass for a family."""

    family: Family
    push: PushResult = field(default_factory=PushResult)
    pull: PullResult = field(default_factory=PullResult)
    offline: bool = False
    skipped: bool = False
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.push.ok and self.pull.ok

    def summary(self) -> str:
        if self.skipped:
            return f"{self.family.value}: already syncing"
        if self.offline:
            return f"{self.family.value}: offline, changes kept locally"
        text = (
            f"{self.family.value}: pushed {self.push.succeeded}, "
            f"pulled {self.pull.synced}, {self.push.failed} failed"
        )
        if self.pull.error:
            text += f" (pull failed: {self.pull.error})"
        return text


def backfill(local: SyncedEntity, remote: SyncedEntity) -> SyncedEntity:
    """Keep the local row, filling only its empty fields from the remote copy."""
    updates: dict[str, Any] = {}
    for name in type(local).model_fields:
        if name in SYNC_FIELDS:
            continue
        value = getattr(local, name)
        if value is None or value == "" or value == []:
            incoming = getattr(remote, name)
            if incoming is not None and incoming != "" and incoming != []:
                updates[name] = incoming
    return local.model_copy(update=updates) if updates else local


def _coerce_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def raw_remote_id(record: dict[str, Any], payload_type: type[WireModel]) -> int | None:
    key = payload_type.model_fields["remote_id"].alias or "remote_id"
    return _coerce_id(record.get(key))


def _is_not_found(error: Exception) -> bool:
    return isinstance(error, RemoteRejectedError) and error.status_code == 404


class SyncEngine(ABC):
    """
    Reconciles one entity family for one owner.

    Subclasses provide the remote calls and the wire mapping; the ordering,
    flag handling and conflict rules live here.
    """

    family: ClassVar[Family]
    payload_type: ClassVar[type[WireModel]]

    def __init__(
        self,
        session: Session,
        store: BaseStore,
        remote: Any,
        connectivity: Any,
    ):
        self.session = session
        self.store = store
        self.remote = remote
        self.connectivity = connectivity
        self.status = SyncStatus()
        self._syncing = False

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    @property
    def owner_id(self) -> int:
        return self.session.owner_id

    # Hooks

    @abstractmethod
    async def fetch_remote(self) -> list[dict[str, Any]]:
        """Every remote row for the owner, all pages."""

    @abstractmethod
    def from_wire(self, payload: Any, existing: SyncedEntity | None) -> SyncedEntity:
        """Map one remote payload to a clean local entity."""

    @abstractmethod
    async def remote_create(self, entity: SyncedEntity) -> int | None:
        """Create the row remotely; returns the assigned server id."""

    @abstractmethod
    async def remote_update(self, entity: SyncedEntity) -> None:
        pass

    @abstractmethod
    async def remote_delete(self, entity: SyncedEntity) -> None:
        pass

    def remote_id_of(self, record: dict[str, Any]) -> int | None:
        """Read only the server id from a raw record, whatever the other fields hold."""
        return raw_remote_id(record, self.payload_type)

    # Entry points

    def _begin(self) -> bool:
        """Validate the caller and claim the family; False when a pass is already running."""
        self.session.require()
        if self._syncing:
            return False
        self._syncing = True
        return True

    def _finish(self, state: SyncState = SyncState.IDLE) -> None:
        self._syncing = False
        self.status.state = state

    async def _offline(self) -> bool:
        if await self.connectivity.is_reachable():
            return False
        logger.info("Server unreachable, %s changes kept locally", self.family.value)
        return True

    async def sync_to_remote(self) -> PushResult:
        """Push queued local changes."""
        if not self._begin():
            return PushResult(skipped=True)
        state = SyncState.IDLE
        try:
            if await self._offline():
                state = SyncState.OFFLINE
                return PushResult(offline=True)
            return await self._push()
        finally:
            self._finish(state)

    async def sync_from_remote(self) -> PullResult:
        """Pull the remote collection and reconcile it into the local store."""
        if not self._begin():
            return PullResult(skipped=True)
        state = SyncState.IDLE
        try:
            if await self._offline():
                state = SyncState.OFFLINE
                return PullResult(offline=True)
            return await self._pull()
        finally:
            self._finish(state)

    async def perform_full_sync(self) -> SyncReport:
        """Push, then pull. The pull sees the server ids assigned by the push."""
        report = SyncReport(family=self.family)
        if not self._begin():
            report.skipped = True
            return report

        try:
            if await self._offline():
                report.offline = True
                report.finished_at = datetime.now()
                self._finish(SyncState.OFFLINE)
                return report
            self.status.state = SyncState.SYNCING
            self.status.error_message = ""
            report.push = await self._push()
            report.pull = await self._pull()
            self.status.pending_uploads = await self.store.unsynced_count(self.family, self.owner_id)
        except BaseException:
            self._finish(SyncState.ERROR)
            raise

        report.finished_at = datetime.now()
        self.status.last_sync = report.finished_at
        if report.ok:
            self._finish()
        else:
            self.status.error_message = report.summary()
            self._finish(SyncState.ERROR)
        return report

    # Push

    async def push_entity(self, entity: SyncedEntity, surface: bool = False) -> bool:
        """
        Push one live row. On success the row is stored clean with its server
        id; on failure it is left untouched. With ``surface`` a rejection is
        re-raised so a foreground caller can show the server message.
        """
        try:
            if entity.remote_id is not None:
                await self.remote_update(entity)
                entity.mark_clean()
            else:
                remote_id = await self.remote_create(entity)
                if remote_id is None:
                    raise RemoteRejectedError("Create response carried no id")
                entity.mark_clean(remote_id)
        except ROW_ERRORS as e:
            logger.warning(
                "Push failed for %s %s: %s", self.family.value, entity.id, e
            )
            if surface and not isinstance(e, TransportError):
                raise
            return False

        await self.store.upsert(entity)
        return True

    async def _push_deletion(self, entity: SyncedEntity) -> bool:
        if entity.remote_id is None:
            # Never reached the server
            await self.store.purge(self.family, entity.id)
            return True
        try:
            await self.remote_delete(entity)
        except ROW_ERRORS as e:
            if not _is_not_found(e):
                logger.warning(
                    "Remote delete failed for %s %s: %s", self.family.value, entity.id, e
                )
                return False
        await self.store.purge(self.family, entity.id)
        return True

    async def _push(self) -> PushResult:
        self.status.state = SyncState.UPLOADING
        result = PushResult()
        pending = await self.store.pending(self.family, self.owner_id)

        for entity in [row for row in pending if row.is_deleted]:
            if await self._push_deletion(entity):
                result.succeeded += 1
            else:
                result.failed += 1

        for entity in [row for row in pending if not row.is_deleted]:
            if await self.push_entity(entity):
                result.succeeded += 1
            else:
                result.failed += 1

        if result.succeeded or result.failed:
            logger.info(
                "Pushed %s: %d succeeded, %d failed",
                self.family.value, result.succeeded, result.failed,
            )
        return result

    # Pull

    def _parse(self, records: list[dict[str, Any]]) -> list[Any]:
        payloads = []
        for record in records:
            try:
                payload = self.payload_type.model_validate(record)
            except pydantic.ValidationError as e:
                logger.warning("Skipping malformed %s row: %s", self.family.value, e)
                continue
            if payload.remote_id is not None:
                payloads.append(payload)
        return payloads

    async def _pull(self) -> PullResult:
        self.status.state = SyncState.DOWNLOADING
        try:
            records = await self.fetch_remote()
        except (TransportError, RemoteRejectedError) as e:
            logger.warning("Pull aborted for %s: %s", self.family.value, e)
            return PullResult(error=str(e))

        # Presence comes from raw ids; a malformed row still counts as present
        present = {self.remote_id_of(record) for record in records} - {None}
        payloads = self._parse(records)
        result = PullResult()
        result.purged = await self._purge_missing(present)

        for payload in payloads:
            if await self.apply_remote(payload):
                result.synced += 1
        return result

    async def _purge_missing(self, remote_ids: set[int]) -> int:
        """Purge clean rows whose server id is gone. Pending rows are never purged here."""
        purged = 0
        for row in await self.store.with_remote_id(self.family, self.owner_id):
            if row.needs_sync or row.remote_id in remote_ids:
                continue
            await self.store.purge(self.family, row.id)
            purged += 1
        if purged:
            logger.info("Purged %d %s rows deleted on the server", purged, self.family.value)
        return purged

    async def apply_remote(self, payload: Any) -> bool:
        """Upsert one remote row under the local-wins rule. Unchanged rows are not rewritten."""
        existing = await self.store.get_by_remote_id(self.family, self.owner_id, payload.remote_id)
        incoming = self.from_wire(payload, existing)

        if existing is None:
            await self.store.upsert(incoming)
            return True

        if existing.needs_sync:
            merged = backfill(existing, incoming)
            if merged.content() != existing.content():
                await self.store.upsert(merged)
            return True

        if incoming.content() != existing.content():
            await self.store.upsert(incoming)
        return True
