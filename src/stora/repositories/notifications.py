"""Foreground reminder and notification history operations."""

from __future__ import annotations

import logging

from stora.errors import TransportError, ValidationError
from stora.mapping.reminders import reminder_to_request
from stora.schema.base import Family
from stora.schema.reminder import (
    NotificationHistoryEntry,
    NotificationOrigin,
    NotificationStatus,
    ReminderSetting,
    ReminderType,
)
from stora.schema.wire import ReminderPayload
from stora.storage import views
from stora.repositories.base import Repository
from stora.sync.reminders import (
    Notifier,
    ReminderSync,
    due_reminders,
    evaluate_due_reminders,
    record_notification,
)

logger = logging.getLogger(__name__)


class NotificationRepository(Repository):
    family = Family.REMINDERS

    def __init__(self, *args, sync: ReminderSync | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.sync = sync

    async def _require_reminder(self, local_id: str) -> ReminderSetting:
        reminder = await self.store.get(Family.REMINDERS, local_id)
        if reminder is None or reminder.is_deleted or reminder.owner_id != self.owner_id:
            raise ValidationError(f"Reminder {local_id} not found")
        return reminder

    # Reminders

    async def save_reminder(self, reminder: ReminderSetting) -> ReminderSetting:
        """
        Create or update a reminder. Online, the server is asked first and a
        rejection is raised with its message; unreachable means the change is
        saved locally and queued.
        """
        self.session.require()
        if reminder.reminder_type == ReminderType.CUSTOM and reminder.scheduled_at is None:
            raise ValidationError("A custom reminder needs a scheduled time")

        current = await self.store.get(Family.REMINDERS, reminder.id)
        if current is not None and current.owner_id == self.owner_id:
            reminder.remote_id = current.remote_id
            reminder.created_at = current.created_at
        else:
            reminder.remote_id = None

        reminder.owner_id = self.owner_id
        reminder.is_deleted = False
        reminder.mark_dirty()

        if await self.is_online():
            request = reminder_to_request(reminder)
            try:
                if reminder.remote_id is not None:
                    await self.remote.update_reminder(reminder.remote_id, request)
                    reminder.mark_clean()
                else:
                    envelope = await self.remote.create_reminder(request)
                    remote_id = ReminderPayload.model_validate(envelope.record()).remote_id
                    if remote_id is not None:
                        reminder.mark_clean(remote_id)
            except TransportError as e:
                logger.info("Saving reminder locally, server unreachable: %s", e)

        await self.store.upsert(reminder)
        return reminder

    async def toggle_reminder(self, local_id: str) -> ReminderSetting:
        """Flip the active flag."""
        self.session.require()
        reminder = await self._require_reminder(local_id)
        reminder.is_active = not reminder.is_active
        reminder.mark_dirty()
        await self.store.upsert(reminder)
        if self.sync is not None and await self.is_online():
            await self.sync.push_entity(reminder, surface=True)
        return reminder

    async def delete_reminder(self, local_id: str) -> None:
        self.session.require()
        reminder = await self._require_reminder(local_id)
        reminder.soft_delete()
        await self.store.upsert(reminder)

    async def reminders(self) -> list[ReminderSetting]:
        return await views.reminders(self.store, self.owner_id)

    async def due_reminders(self, now: int | None = None) -> list[ReminderSetting]:
        return await due_reminders(self.store, self.owner_id, now)

    async def evaluate_due_reminders(
        self,
        notify: Notifier,
        now: int | None = None,
    ) -> list[NotificationHistoryEntry]:
        return await evaluate_due_reminders(
            self.store, self.session, notify, await self.is_online(), now
        )

    # Notification history

    async def record_local_notification(
        self,
        title: str,
        message: str,
        related_reminder_id: str | None = None,
        related_loan_id: int | None = None,
        fired_at: int | None = None,
    ) -> NotificationHistoryEntry:
        return await record_notification(
            self.store,
            self.session,
            title=title,
            message=message,
            origin=NotificationOrigin.LOCAL_FIRE,
            fired_at=fired_at,
            related_reminder_id=related_reminder_id,
            related_loan_id=related_loan_id,
        )

    async def record_push_notification(
        self,
        title: str,
        message: str,
        server_reminder_id: int | None = None,
        related_loan_id: int | None = None,
        fired_at: int | None = None,
    ) -> NotificationHistoryEntry:
        """Record a notification delivered by the server's push service."""
        return await record_notification(
            self.store,
            self.session,
            title=title,
            message=message,
            origin=NotificationOrigin.REMOTE_PUSH,
            fired_at=fired_at,
            server_reminder_id=server_reminder_id,
            related_reminder_id=str(server_reminder_id) if server_reminder_id is not None else None,
            related_loan_id=related_loan_id,
        )

    async def mark_read(self, local_id: str) -> None:
        """Read state is local only; the server keeps no per-entry status updates."""
        self.session.require()
        entry = await self.store.get(Family.NOTIFICATIONS, local_id)
        if entry is None or entry.owner_id != self.owner_id:
            raise ValidationError(f"Notification {local_id} not found")
        if entry.status != NotificationStatus.READ:
            entry.status = NotificationStatus.READ
            await self.store.upsert(entry)

    async def mark_all_read(self) -> int:
        self.session.require()
        count = 0
        for entry in await self.store.list(Family.NOTIFICATIONS, self.owner_id):
            if entry.status != NotificationStatus.READ:
                entry.status = NotificationStatus.READ
                await self.store.upsert(entry)
                count += 1
        return count

    async def history(self) -> list[NotificationHistoryEntry]:
        return await views.notification_history(self.store, self.owner_id)

    async def unread_count(self) -> int:
        return await views.unread_count(self.store, self.owner_id)
