"""Sync engines and the manager composing them."""

from stora.sync.engine import (
    PullResult,
    PushResult,
    SyncEngine,
    SyncReport,
    SyncState,
    SyncStatus,
    backfill,
)
from stora.sync.inventory import InventorySync
from stora.sync.loans import LoanSync
from stora.sync.manager import SyncManager, status_line
from stora.sync.reminders import (
    ReminderSync,
    due_reminders,
    evaluate_due_reminders,
    find_duplicate,
    fire,
    is_due,
    record_notification,
)

__all__ = [
    "SyncEngine",
    "SyncReport",
    "SyncState",
    "SyncStatus",
    "PushResult",
    "PullResult",
    "backfill",
    "InventorySync",
    "LoanSync",
    "ReminderSync",
    "SyncManager",
    "status_line",
    "is_due",
    "due_reminders",
    "find_duplicate",
    "record_notification",
    "fire",
    "evaluate_due_reminders",
]
