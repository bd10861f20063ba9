"""
STORA sync client

Offline-first synchronization of an inventory and loan-tracking store with
its REST backend.

The client provides:
- A local store (SQLite or in-memory) with per-row sync flags
- Push/pull reconciliation per entity family, local changes winning
- Reminder evaluation with notification history dedup
- Foreground repositories that work offline

Quick Start:
    from stora import Session, SQLiteStore, RemoteClient, Connectivity, SyncManager
    from stora.config import load_settings

    settings = load_settings()
    store = SQLiteStore(settings.db_path)
    await store.initialize()

    session = Session(owner_id=7, token="...")
    async with RemoteClient(settings, session.token) as remote:
        manager = SyncManager(session, store, remote, Connectivity(settings.server_origin))
        reports = await manager.perform_full_sync()
"""

__version__ = "0.1.0"

from stora.config import Settings, load_settings
from stora.errors import (
    LocalStorageError,
    RemoteRejectedError,
    StoraError,
    TransportError,
    ValidationError,
)
from stora.remote import Connectivity, RemoteClient, StaticConnectivity
from stora.repositories import InventoryRepository, LoanRepository, NotificationRepository
from stora.schema import (
    Family,
    InventoryItem,
    ItemCondition,
    Loan,
    LoanItem,
    LoanStatus,
    NotificationHistoryEntry,
    NotificationOrigin,
    NotificationStatus,
    ReminderSetting,
    ReminderType,
    Session,
)
from stora.storage import BaseStore, DictStore, SQLiteStore
from stora.sync import (
    InventorySync,
    LoanSync,
    ReminderSync,
    SyncManager,
    SyncReport,
)

__all__ = [
    # Config
    "Settings",
    "load_settings",
    # Errors
    "StoraError",
    "ValidationError",
    "TransportError",
    "RemoteRejectedError",
    "LocalStorageError",
    # Schema
    "Family",
    "Session",
    "InventoryItem",
    "ItemCondition",
    "Loan",
    "LoanItem",
    "LoanStatus",
    "ReminderSetting",
    "ReminderType",
    "NotificationHistoryEntry",
    "NotificationOrigin",
    "NotificationStatus",
    # Storage
    "BaseStore",
    "DictStore",
    "SQLiteStore",
    # Remote
    "RemoteClient",
    "Connectivity",
    "StaticConnectivity",
    # Sync
    "SyncManager",
    "SyncReport",
    "InventorySync",
    "LoanSync",
    "ReminderSync",
    # Repositories
    "InventoryRepository",
    "LoanRepository",
    "NotificationRepository",
]
