"""
Reminder and notification history reconciliation.

Reminders sync like any other family. Notification history adds two rules:
the server copy of a day's notification replaces local copies, and at most
one entry exists per (owner, reminder, calendar day) whatever produced it.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import pydantic

from stora.errors import RemoteRejectedError, TransportError
from stora.mapping.dates import add_months, day_bounds
from stora.mapping.reminders import (
    notification_from_wire,
    notification_to_request,
    reminder_from_wire,
    reminder_to_request,
)
from stora.schema.base import Family, Session, now_millis
from stora.schema.reminder import (
    DEFAULT_PERIODIC_MONTHS,
    NotificationHistoryEntry,
    NotificationOrigin,
    NotificationStatus,
    ReminderSetting,
    ReminderType,
)
from stora.schema.wire import NotificationPayload, ReminderPayload
from stora.storage.base import BaseStore
from stora.sync.engine import PullResult, PushResult, SyncEngine, raw_remote_id

logger = logging.getLogger(__name__)

PERIODIC_MESSAGE = "Sudah waktunya untuk melakukan pengecekan inventory Anda!"

Notifier = Callable[[str, str], Awaitable[None] | None]


# Due evaluation

def is_due(reminder: ReminderSetting, now: int) -> bool:
    """
    Periodic: due once whole calendar months have elapsed since the last
    firing (or creation). Custom: due at its instant, once.
    """
    if not reminder.is_active or reminder.is_deleted:
        return False
    if reminder.reminder_type == ReminderType.PERIODIC:
        baseline = reminder.last_notified if reminder.last_notified is not None else reminder.created_at
        months = reminder.periodic_months or DEFAULT_PERIODIC_MONTHS
        return add_months(baseline, months) <= now
    if reminder.scheduled_at is None:
        return False
    if now < reminder.scheduled_at:
        return False
    return reminder.last_notified is None or reminder.last_notified < reminder.scheduled_at


async def due_reminders(store: BaseStore, owner_id: int, now: int | None = None) -> list[ReminderSetting]:
    now = now if now is not None else now_millis()
    return [r for r in await store.list(Family.REMINDERS, owner_id) if is_due(r, now)]


def reminder_message(reminder: ReminderSetting) -> str:
    if reminder.reminder_type == ReminderType.CUSTOM:
        return f"Waktu pengingat: {reminder.title}"
    return PERIODIC_MESSAGE


# Notification dedup

async def find_duplicate(
    store: BaseStore,
    owner_id: int,
    fired_at: int,
    *,
    related_reminder_id: str | None = None,
    server_reminder_id: int | None = None,
    title: str = "",
    message: str = "",
    related_loan_id: int | None = None,
) -> NotificationHistoryEntry | None:
    """
    Look for an entry of the same day, trying in order: related reminder id,
    server reminder id, then title and message. The text match is only used
    for notifications that are not about a loan.
    """
    start, end = day_bounds(fired_at)
    if related_reminder_id is not None:
        found = await store.find_notification(owner_id, start, end, related_reminder_id=related_reminder_id)
        if found:
            return found
    if server_reminder_id is not None:
        found = await store.find_notification(owner_id, start, end, server_reminder_id=server_reminder_id)
        if found:
            return found
    if related_loan_id is None and (title or message):
        return await store.find_notification(owner_id, start, end, title=title, message=message)
    return None


async def record_notification(
    store: BaseStore,
    session: Session,
    *,
    title: str,
    message: str,
    origin: NotificationOrigin,
    fired_at: int | None = None,
    reminder: ReminderSetting | None = None,
    related_reminder_id: str | None = None,
    server_reminder_id: int | None = None,
    related_loan_id: int | None = None,
    status: NotificationStatus = NotificationStatus.SENT,
) -> NotificationHistoryEntry:
    """
    Record a notification unless the day already has one for the same key.

    A server-delivered notification replaces a locally created one; in every
    other case the existing entry is returned and nothing is inserted.
    """
    session.require()
    fired_at = fired_at if fired_at is not None else now_millis()
    if reminder is not None:
        related_reminder_id = related_reminder_id or reminder.id
        if server_reminder_id is None:
            server_reminder_id = reminder.remote_id

    existing = await find_duplicate(
        store,
        session.owner_id,
        fired_at,
        related_reminder_id=related_reminder_id,
        server_reminder_id=server_reminder_id,
        title=title,
        message=message,
        related_loan_id=related_loan_id,
    )
    remote_push = origin == NotificationOrigin.REMOTE_PUSH
    if existing is not None:
        if not (remote_push and existing.is_locally_created):
            logger.debug("Notification '%s' already recorded today", title)
            return existing
        await store.purge(Family.NOTIFICATIONS, existing.id)

    # The push service's copy already exists on the server
    entry = NotificationHistoryEntry(
        owner_id=session.owner_id,
        title=title,
        message=message,
        fired_at=fired_at,
        status=status,
        related_loan_id=related_loan_id,
        related_reminder_id=related_reminder_id,
        server_reminder_id=server_reminder_id,
        is_locally_created=not remote_push,
        needs_sync=not remote_push,
        is_synced=remote_push,
    )
    await store.upsert(entry)
    return entry


# Firing

async def fire(
    store: BaseStore,
    session: Session,
    reminder: ReminderSetting,
    notify: Notifier,
    now: int | None = None,
) -> NotificationHistoryEntry:
    """
    Deliver a reminder and record it. A custom reminder is removed
    afterwards; if the server knows it, a tombstone stays queued so the
    next push deletes it there too.
    """
    now = now if now is not None else now_millis()
    message = reminder_message(reminder)

    delivered = notify(reminder.title, message)
    if inspect.isawaitable(delivered):
        await delivered

    entry = await record_notification(
        store,
        session,
        title=reminder.title,
        message=message,
        origin=NotificationOrigin.LOCAL_FIRE,
        fired_at=now,
        reminder=reminder,
    )

    reminder.last_notified = now
    if reminder.reminder_type == ReminderType.CUSTOM:
        if reminder.remote_id is None:
            await store.purge(Family.REMINDERS, reminder.id)
        else:
            reminder.soft_delete()
            await store.upsert(reminder)
    else:
        await store.upsert(reminder)

    logger.info("Fired reminder '%s' (%s)", reminder.title, reminder.reminder_type.value)
    return entry


async def evaluate_due_reminders(
    store: BaseStore,
    session: Session,
    notify: Notifier,
    online: bool,
    now: int | None = None,
) -> list[NotificationHistoryEntry]:
    """
    Fire due reminders on-device. Only done offline; when online the
    server's push service delivers them.
    """
    session.require()
    now = now if now is not None else now_millis()
    due = await due_reminders(store, session.owner_id, now)
    if online:
        if due:
            logger.debug("%d reminders due, left to the push service", len(due))
        return []
    return [await fire(store, session, reminder, notify, now) for reminder in due]


class ReminderSync(SyncEngine):
    """Reminder settings plus their notification history."""

    family = Family.REMINDERS
    payload_type = ReminderPayload

    async def fetch_remote(self) -> list[dict[str, Any]]:
        return await self.remote.fetch_all_reminders()

    def from_wire(self, payload: ReminderPayload, existing: ReminderSetting | None) -> ReminderSetting:
        return reminder_from_wire(payload, self.owner_id, existing)

    async def remote_create(self, entity: ReminderSetting) -> int | None:
        envelope = await self.remote.create_reminder(reminder_to_request(entity))
        return self.remote_id_of(envelope.record())

    async def remote_update(self, entity: ReminderSetting) -> None:
        await self.remote.update_reminder(entity.remote_id, reminder_to_request(entity))

    async def remote_delete(self, entity: ReminderSetting) -> None:
        await self.remote.delete_reminder(entity.remote_id)

    # Notification history

    async def _push(self) -> PushResult:
        result = await super()._push()
        pushed = await self.push_notifications()
        result.succeeded += pushed.succeeded
        result.failed += pushed.failed
        return result

    async def push_notifications(self) -> PushResult:
        """Post locally created entries; the server has no update or delete for history."""
        result = PushResult()
        for entry in await self.store.pending(Family.NOTIFICATIONS, self.owner_id):
            if entry.is_deleted or not entry.is_locally_created:
                entry.mark_clean()
                if entry.is_deleted:
                    await self.store.purge(Family.NOTIFICATIONS, entry.id)
                else:
                    await self.store.upsert(entry)
                continue
            try:
                envelope = await self.remote.create_notification(notification_to_request(entry))
            except (TransportError, RemoteRejectedError) as e:
                logger.warning("Push failed for notification %s: %s", entry.id, e)
                result.failed += 1
                continue
            remote_id = raw_remote_id(envelope.record(), NotificationPayload)
            if remote_id is None:
                logger.warning("Notification %s created without an id", entry.id)
                result.failed += 1
                continue
            entry.mark_clean(remote_id)
            await self.store.upsert(entry)
            result.succeeded += 1
        return result

    async def _pull(self) -> PullResult:
        result = await super()._pull()
        if not result.ok:
            return result
        history = await self.pull_notifications()
        result.synced += history.synced
        result.purged += history.purged
        result.error = history.error
        return result

    async def pull_notifications(self) -> PullResult:
        try:
            records = await self.remote.fetch_all_notifications()
        except (TransportError, RemoteRejectedError) as e:
            logger.warning("Notification history pull aborted: %s", e)
            return PullResult(error=str(e))

        payloads = []
        for record in records:
            try:
                payload = NotificationPayload.model_validate(record)
            except pydantic.ValidationError as e:
                logger.warning("Skipping malformed notification row: %s", e)
                continue
            if payload.remote_id is not None:
                payloads.append(payload)

        result = PullResult()
        remote_ids = {raw_remote_id(record, NotificationPayload) for record in records} - {None}
        for row in await self.store.with_remote_id(Family.NOTIFICATIONS, self.owner_id):
            if not row.needs_sync and row.remote_id not in remote_ids:
                await self.store.purge(Family.NOTIFICATIONS, row.id)
                result.purged += 1

        for payload in payloads:
            if await self._apply_notification(payload):
                result.synced += 1
        return result

    async def _apply_notification(self, payload: NotificationPayload) -> bool:
        existing = await self.store.get_by_remote_id(Family.NOTIFICATIONS, self.owner_id, payload.remote_id)
        incoming = notification_from_wire(payload, self.owner_id, existing)

        if existing is not None:
            if existing.needs_sync:
                return True
            # Read state is tracked on the device only
            if existing.status == NotificationStatus.READ:
                incoming.status = NotificationStatus.READ
            if incoming.content() != existing.content():
                await self.store.upsert(incoming)
            return True

        # Remote copy replaces any unconfirmed local copy of the same day
        start, end = day_bounds(incoming.fired_at)
        owner = self.owner_id
        if incoming.related_reminder_id is not None:
            await self.store.purge_local_notifications(
                owner, start, end, related_reminder_id=incoming.related_reminder_id
            )
        if incoming.server_reminder_id is not None:
            await self.store.purge_local_notifications(
                owner, start, end, server_reminder_id=incoming.server_reminder_id
            )
        if incoming.related_loan_id is None:
            await self.store.purge_local_notifications(
                owner, start, end, title=incoming.title, message=incoming.message
            )

        duplicate = await find_duplicate(
            self.store,
            owner,
            incoming.fired_at,
            related_reminder_id=incoming.related_reminder_id,
            server_reminder_id=incoming.server_reminder_id,
            title=incoming.title,
            message=incoming.message,
            related_loan_id=incoming.related_loan_id,
        )
        if duplicate is not None:
            logger.debug("Server notification %s duplicates %s", payload.remote_id, duplicate.id)
            return False

        await self.store.upsert(incoming)
        return True
