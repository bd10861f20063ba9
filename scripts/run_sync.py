#!/usr/bin/env python3
"""
Run the STORA sync scheduler from cron or a service manager.

Reads the signed-in owner from STORA_OWNER_ID / STORA_TOKEN.

Usage:
    python scripts/run_sync.py              # One cycle, exit 1 if anything failed
    python scripts/run_sync.py --daemon     # Loop at STORA_SYNC_INTERVAL_MINUTES
    python scripts/run_sync.py --daemon 30  # Loop every 30 minutes
"""

import asyncio
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from stora.config import load_settings
from stora.logging_setup import configure_logging
from stora.scheduler import run_sync_daemon, run_sync_once


def main() -> int:
    settings = load_settings()
    configure_logging(settings)

    if len(sys.argv) > 1 and sys.argv[1] == "--daemon":
        interval = int(sys.argv[2]) if len(sys.argv) > 2 else None
        asyncio.run(run_sync_daemon(interval, settings))
        return 0

    result = asyncio.run(run_sync_once(settings))
    print(result["status"])
    if result["skipped"]:
        return 0
    return 0 if all(report.ok for report in result["reports"]) else 1


if __name__ == "__main__":
    sys.exit(main())
