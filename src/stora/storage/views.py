"""
Read-only projections computed from the local store on request.

Nothing here is cached; each call reads the store, which stays the single
source of truth.
"""

from __future__ import annotations

from stora.schema.base import Family
from stora.schema.inventory import InventoryItem
from stora.schema.loan import TERMINAL_STATUSES, Loan
from stora.schema.reminder import NotificationHistoryEntry, NotificationStatus, ReminderSetting
from stora.storage.base import BaseStore


async def inventory_items(store: BaseStore, owner_id: int) -> list[InventoryItem]:
    return await store.list(Family.INVENTORY, owner_id)


async def search_inventory(store: BaseStore, owner_id: int, query: str) -> list[InventoryItem]:
    """Case-insensitive match on name, code, category or location."""
    needle = query.strip().lower()
    items = await inventory_items(store, owner_id)
    if not needle:
        return items
    return [
        item for item in items
        if any(needle in field.lower() for field in (item.name, item.code, item.category, item.location))
    ]


async def total_quantity(store: BaseStore, owner_id: int) -> int:
    return sum(item.quantity for item in await inventory_items(store, owner_id))


async def active_loans(store: BaseStore, owner_id: int) -> list[Loan]:
    """Loans still out (waiting or borrowed)."""
    loans = await store.list(Family.LOANS, owner_id)
    return [loan for loan in loans if loan.status not in TERMINAL_STATUSES]


async def loan_history(store: BaseStore, owner_id: int) -> list[Loan]:
    """Closed loans, most recently modified first."""
    loans = await store.list(Family.LOANS, owner_id)
    closed = [loan for loan in loans if loan.status in TERMINAL_STATUSES]
    return sorted(closed, key=lambda loan: loan.last_modified, reverse=True)


async def borrowed_quantity(store: BaseStore, owner_id: int, code: str) -> int:
    """Units of an inventory code currently out on active loans."""
    total = 0
    for loan in await active_loans(store, owner_id):
        total += sum(item.quantity for item in loan.items if item.item_code == code)
    return total


async def reminders(store: BaseStore, owner_id: int) -> list[ReminderSetting]:
    return await store.list(Family.REMINDERS, owner_id)


async def notification_history(store: BaseStore, owner_id: int) -> list[NotificationHistoryEntry]:
    """History entries, newest first."""
    entries = await store.list(Family.NOTIFICATIONS, owner_id)
    return sorted(entries, key=lambda entry: entry.fired_at, reverse=True)


async def unread_count(store: BaseStore, owner_id: int) -> int:
    entries = await store.list(Family.NOTIFICATIONS, owner_id)
    return sum(1 for entry in entries if entry.status != NotificationStatus.READ)
