"""Reminder and notification history wire <-> local mapping."""

from __future__ import annotations

from stora.mapping.dates import parse_instant, to_wire_datetime
from stora.mapping.inventory import assign_local_id
from stora.schema.base import now_millis
from stora.schema.reminder import (
    DEFAULT_PERIODIC_MONTHS,
    DEFAULT_REMINDER_TITLE,
    NotificationHistoryEntry,
    NotificationStatus,
    ReminderSetting,
    ReminderType,
)
from stora.schema.wire import (
    NotificationHistoryRequest,
    NotificationPayload,
    ReminderPayload,
    ReminderRequest,
)


def _reminder_type(value: str | None) -> ReminderType:
    return ReminderType.CUSTOM if (value or "").lower() == "custom" else ReminderType.PERIODIC


def reminder_from_wire(
    payload: ReminderPayload,
    owner_id: int,
    existing: ReminderSetting | None = None,
) -> ReminderSetting:
    """
    Hydrate a clean reminder. Server values win; values the server returns
    as null are backfilled from the local row.
    """
    reminder_type = _reminder_type(payload.reminder_type)

    scheduled_at = parse_instant(payload.scheduled_datetime)
    if scheduled_at is None and existing is not None:
        scheduled_at = existing.scheduled_at
    last_notified = parse_instant(payload.last_notified)
    if existing is not None and existing.last_notified is not None:
        # A local firing the server has not heard of yet must not be undone
        if last_notified is None or existing.last_notified > last_notified:
            last_notified = existing.last_notified
    created_at = parse_instant(payload.created_at)
    if created_at is None:
        created_at = existing.created_at if existing is not None else now_millis()

    months = payload.periodic_months
    if months is None and existing is not None:
        months = existing.periodic_months

    if reminder_type == ReminderType.PERIODIC:
        scheduled_at = None
        months = min(max(months or DEFAULT_PERIODIC_MONTHS, 1), 12)

    if payload.is_active is not None:
        is_active = payload.is_active
    else:
        is_active = existing.is_active if existing is not None else True

    return ReminderSetting(
        id=assign_local_id(existing),
        remote_id=payload.remote_id,
        owner_id=owner_id,
        reminder_type=reminder_type,
        title=payload.title or (existing.title if existing is not None else DEFAULT_REMINDER_TITLE),
        periodic_months=months,
        scheduled_at=scheduled_at,
        push_token=payload.fcm_token or (existing.push_token if existing is not None else None),
        is_active=is_active,
        last_notified=last_notified,
        created_at=created_at,
        needs_sync=False,
        is_synced=True,
    )


def reminder_to_request(reminder: ReminderSetting) -> ReminderRequest:
    periodic = reminder.reminder_type == ReminderType.PERIODIC
    return ReminderRequest(
        reminder_type=reminder.reminder_type.value,
        title=reminder.title,
        periodic_months=reminder.periodic_months if periodic else None,
        scheduled_datetime=None if periodic else to_wire_datetime(reminder.scheduled_at),
        fcm_token=reminder.push_token,
        is_active=reminder.is_active,
    )


def notification_from_wire(
    payload: NotificationPayload,
    owner_id: int,
    existing: NotificationHistoryEntry | None = None,
) -> NotificationHistoryEntry:
    fired_at = parse_instant(payload.fired_at)
    if fired_at is None:
        fired_at = existing.fired_at if existing is not None else now_millis()
    server_reminder_id = payload.reminder_remote_id
    return NotificationHistoryEntry(
        id=assign_local_id(existing),
        remote_id=payload.remote_id,
        owner_id=owner_id,
        title=payload.title or "",
        message=payload.message or "",
        fired_at=fired_at,
        status=NotificationStatus.parse(payload.status),
        related_loan_id=payload.loan_remote_id,
        related_reminder_id=str(server_reminder_id) if server_reminder_id is not None else None,
        server_reminder_id=server_reminder_id,
        is_locally_created=False,
        needs_sync=False,
        is_synced=True,
    )


def notification_to_request(entry: NotificationHistoryEntry) -> NotificationHistoryRequest:
    reminder_ref = entry.server_reminder_id
    if reminder_ref is None and entry.related_reminder_id and entry.related_reminder_id.isdigit():
        reminder_ref = int(entry.related_reminder_id)
    return NotificationHistoryRequest(
        title=entry.title,
        message=entry.message,
        timestamp=str(entry.fired_at),
        status=entry.status.value,
        reminder_remote_id=reminder_ref,
    )
