"""
Composes the family engines for one signed-in owner.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from stora.schema.base import Family, Session
from stora.storage.base import BaseStore
from stora.sync.engine import SyncEngine, SyncReport
from stora.sync.inventory import InventorySync
from stora.sync.loans import LoanSync
from stora.sync.reminders import ReminderSync

logger = logging.getLogger(__name__)


class SyncManager:
    """
    Runs full syncs across families and optionally in the background.

    Families run in dependency order: inventory first so loans can refer to
    inventory server ids, then loans, then reminders.
    """

    def __init__(
        self,
        session: Session,
        store: BaseStore,
        remote: Any,
        connectivity: Any,
        sync_interval_seconds: int = 900,
    ):
        self.session = session
        self.store = store
        self.remote = remote
        self.connectivity = connectivity
        self.sync_interval_seconds = sync_interval_seconds

        self.inventory = InventorySync(session, store, remote, connectivity)
        self.loans = LoanSync(session, store, remote, connectivity, inventory=self.inventory)
        self.reminders = ReminderSync(session, store, remote, connectivity)

        self.last_reports: list[SyncReport] = []
        self._running = False
        self._sync_task: asyncio.Task | None = None

    @property
    def engines(self) -> list[SyncEngine]:
        return [self.inventory, self.loans, self.reminders]

    def engine(self, family: Family) -> SyncEngine:
        for engine in self.engines:
            if engine.family == family:
                return engine
        raise KeyError(family)

    @property
    def is_syncing(self) -> bool:
        return any(engine.is_syncing for engine in self.engines)

    async def perform_full_sync(self) -> list[SyncReport]:
        """Push-then-pull every family, in order."""
        self.session.require()
        reports = []
        for engine in self.engines:
            reports.append(await engine.perform_full_sync())
        self.last_reports = reports
        logger.info(status_line(reports))
        return reports

    async def unsynced_counts(self) -> dict[Family, int]:
        owner_id = self.session.owner_id
        return {family: await self.store.unsynced_count(family, owner_id) for family in Family}

    # Background loop

    async def start(self) -> None:
        """Start background sync."""
        if self._running:
            return

        self._running = True
        self._sync_task = asyncio.create_task(self._sync_loop())

    async def stop(self) -> None:
        """Stop background sync."""
        self._running = False
        if self._sync_task:
            self._sync_task.cancel()
            try:
                await self._sync_task
            except asyncio.CancelledError:
                pass
            self._sync_task = None

    async def _sync_loop(self) -> None:
        while self._running:
            try:
                await self.perform_full_sync()
            except Exception as e:
                logger.error("Background sync failed: %s", e)

            await asyncio.sleep(self.sync_interval_seconds)

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self._running,
            "syncing": self.is_syncing,
            "families": {
                engine.family.value: {
                    "state": engine.status.state.value,
                    "last_sync": engine.status.last_sync.isoformat() if engine.status.last_sync else None,
                    "pending_uploads": engine.status.pending_uploads,
                    "error_message": engine.status.error_message,
                }
                for engine in self.engines
            },
            "summary": status_line(self.last_reports) if self.last_reports else "",
        }


def status_line(reports: list[SyncReport]) -> str:
    """Aggregate status for background runs, e.g. ``Synced 12, 1 failed``."""
    if reports and all(r.offline for r in reports):
        return "Offline, changes saved locally"
    if reports and all(r.skipped for r in reports):
        return "Sync already in progress"
    synced = sum(r.push.succeeded + r.pull.synced for r in reports)
    failed = sum(r.push.failed for r in reports) + sum(1 for r in reports if r.pull.error)
    if failed:
        return f"Synced {synced}, {failed} failed"
    return f"Synced {synced}"
