"""
Scheduler module for STORA.

Provides periodic sync and due-reminder evaluation.
"""

from stora.scheduler.sync_scheduler import (
    SyncScheduler,
    run_sync_daemon,
    run_sync_once,
    session_from_env,
)

__all__ = [
    "SyncScheduler",
    "run_sync_once",
    "run_sync_daemon",
    "session_from_env",
]
