"""Reminder settings and the notification history they produce."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from pydantic import Field, model_validator

from stora.schema.base import Family, SyncedEntity, now_millis

DEFAULT_REMINDER_TITLE = "Pengingat Pengecekan Inventory"
DEFAULT_PERIODIC_MONTHS = 3


class ReminderType(str, Enum):
    PERIODIC = "periodic"
    CUSTOM = "custom"


class NotificationStatus(str, Enum):
    """Delivery state of a history entry (values are the backend's labels)."""

    SENT = "Terkirim"
    FAILED = "Gagal"
    READ = "Dibaca"

    @classmethod
    def parse(cls, value: str | None) -> NotificationStatus:
        lowered = (value or "").lower()
        if lowered in ("dibaca", "read"):
            return cls.READ
        if lowered in ("gagal", "failed"):
            return cls.FAILED
        return cls.SENT


class NotificationOrigin(str, Enum):
    """Where a notification was produced."""

    LOCAL_FIRE = "local_fire"  # Fired on-device while offline
    BACKGROUND_CHECK = "background_check"  # Periodic re-check
    REMOTE_PUSH = "remote_push"  # Delivered by the server push service


class ReminderSetting(SyncedEntity):
    """
    A periodic (every N months) or custom (single instant) reminder.

    Periodic reminders never carry ``scheduled_at``. Custom reminders are
    deleted once they fire.
    """

    family: ClassVar[Family] = Family.REMINDERS

    reminder_type: ReminderType = ReminderType.PERIODIC
    title: str = DEFAULT_REMINDER_TITLE
    periodic_months: int | None = DEFAULT_PERIODIC_MONTHS
    scheduled_at: int | None = None  # Epoch millis, custom only
    push_token: str | None = None
    is_active: bool = True
    last_notified: int | None = None
    created_at: int = Field(default_factory=now_millis)

    @model_validator(mode="after")
    def check_shape(self) -> ReminderSetting:
        if self.reminder_type == ReminderType.PERIODIC:
            if self.scheduled_at is not None:
                raise ValueError("periodic reminders cannot carry a scheduled instant")
            if self.periodic_months is not None and not 1 <= self.periodic_months <= 12:
                raise ValueError("periodic_months must be between 1 and 12")
        return self


class NotificationHistoryEntry(SyncedEntity):
    """A delivered notification; at most one per (owner, reminder, day)."""

    family: ClassVar[Family] = Family.NOTIFICATIONS

    title: str = ""
    message: str = ""
    fired_at: int = Field(default_factory=now_millis)
    status: NotificationStatus = NotificationStatus.SENT
    related_loan_id: int | None = None
    related_reminder_id: str | None = None
    server_reminder_id: int | None = None
    is_locally_created: bool = False
