"""
Sync Scheduler for STORA.

Runs periodic full syncs and the due-reminder check.
Can run as a background daemon or via cron.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from collections.abc import Callable
from typing import Any

import httpx

from stora.config import Settings, load_settings
from stora.errors import StoraError
from stora.remote.client import RemoteClient
from stora.remote.connectivity import Connectivity
from stora.schema.base import Session
from stora.storage.base import BaseStore
from stora.storage.sqlite_store import SQLiteStore
from stora.sync.manager import SyncManager, status_line
from stora.sync.reminders import Notifier, evaluate_due_reminders

logger = logging.getLogger(__name__)


def session_from_env() -> Session | None:
    """Signed-in owner from ``STORA_OWNER_ID`` and ``STORA_TOKEN``, if both are set."""
    owner = os.environ.get("STORA_OWNER_ID", "").strip()
    token = os.environ.get("STORA_TOKEN", "").strip()
    if not owner or not token:
        return None
    try:
        return Session(owner_id=int(owner), token=token)
    except ValueError:
        logger.error("STORA_OWNER_ID must be an integer, got %r", owner)
        return None


def log_notifier(title: str, message: str) -> None:
    """Default delivery: write the notification to the log."""
    logger.info("Reminder: %s - %s", title, message)


class SyncScheduler:
    """
    Scheduler for periodic synchronization.

    Each cycle syncs every family when the server is reachable, then
    evaluates due reminders (fired on-device only while offline).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        session_provider: Callable[[], Session | None] = session_from_env,
        store: BaseStore | None = None,
        connectivity: Any = None,
        notify: Notifier = log_notifier,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or load_settings()
        self.session_provider = session_provider
        self.notify = notify
        self._store = store
        self._owns_store = store is None
        self._initialized = False
        self._transport = transport
        self.connectivity = connectivity or Connectivity(
            self.settings.server_origin,
            timeout_seconds=self.settings.probe_timeout_seconds,
            transport=transport,
        )
        self._running = False
        self._stop = asyncio.Event()

    async def _get_store(self) -> BaseStore:
        if self._store is None:
            self._store = SQLiteStore(self.settings.db_path)
        if not self._initialized:
            await self._store.initialize()
            self._initialized = True
        return self._store

    async def run_cycle(self, now: int | None = None) -> dict[str, Any]:
        """Run a single sync cycle for the signed-in owner."""
        session = self.session_provider()
        if session is None:
            logger.info("No user signed in, skipping cycle")
            return {"skipped": True, "status": "Not signed in", "reports": [], "fired": []}

        store = await self._get_store()
        online = await self.connectivity.is_reachable()

        reports = []
        status = "Offline, changes saved locally"
        if online:
            async with RemoteClient(self.settings, session.token, transport=self._transport) as remote:
                manager = SyncManager(session, store, remote, self.connectivity)
                try:
                    reports = await manager.perform_full_sync()
                    status = status_line(reports)
                except StoraError as e:
                    logger.error("Sync cycle failed: %s", e)
                    status = f"Sync failed: {e}"

        fired = await evaluate_due_reminders(store, session, self.notify, online, now)
        if fired:
            logger.info("Fired %d reminders locally", len(fired))

        logger.info("Sync cycle complete: %s", status)
        return {
            "skipped": False,
            "online": online,
            "status": status,
            "reports": reports,
            "fired": fired,
        }

    def stop(self) -> None:
        """Ask a running daemon to exit after the current cycle."""
        logger.info("Received shutdown signal")
        self._running = False
        self._stop.set()

    async def run_daemon(self, interval_minutes: int | None = None) -> None:
        """Run as a background daemon."""
        interval = interval_minutes or self.settings.sync_interval_minutes
        self._running = True
        self._stop.clear()
        logger.info("Starting sync daemon (every %d minutes)", interval)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self.stop)

        try:
            while self._running:
                try:
                    await self.run_cycle()
                except StoraError as e:
                    logger.error("Error in sync cycle: %s", e)

                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=interval * 60)
                except asyncio.TimeoutError:
                    pass
        finally:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)

        logger.info("Sync daemon stopped")

    async def close(self) -> None:
        """Clean up resources."""
        if self._store is not None and self._owns_store and self._initialized:
            await self._store.close()
            self._initialized = False


async def run_sync_once(settings: Settings | None = None) -> dict[str, Any]:
    """Run a single sync cycle."""
    scheduler = SyncScheduler(settings)
    try:
        return await scheduler.run_cycle()
    finally:
        await scheduler.close()


async def run_sync_daemon(interval_minutes: int | None = None, settings: Settings | None = None) -> None:
    """Run the sync daemon."""
    scheduler = SyncScheduler(settings)
    try:
        await scheduler.run_daemon(interval_minutes)
    finally:
        await scheduler.close()
