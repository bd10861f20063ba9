"""Local entities and backend wire contracts."""

from stora.schema.base import Family, Session, SyncedEntity, new_local_id, now_millis
from stora.schema.inventory import InventoryItem, ItemCondition
from stora.schema.loan import TERMINAL_STATUSES, Loan, LoanItem, LoanStatus, can_transition
from stora.schema.reminder import (
    DEFAULT_PERIODIC_MONTHS,
    DEFAULT_REMINDER_TITLE,
    NotificationHistoryEntry,
    NotificationOrigin,
    NotificationStatus,
    ReminderSetting,
    ReminderType,
)
from stora.schema.wire import (
    ApiEnvelope,
    InventoryPayload,
    InventoryRequest,
    LoanCreateRequest,
    LoanInventoryRef,
    LoanItemPayload,
    LoanItemRequest,
    LoanPayload,
    LoanPhotoPayload,
    LoanStatusRequest,
    LoanUpdateRequest,
    NotificationHistoryRequest,
    NotificationPayload,
    Pagination,
    PhotoPayload,
    ReminderPayload,
    ReminderRequest,
)

__all__ = [
    "Family",
    "Session",
    "SyncedEntity",
    "new_local_id",
    "now_millis",
    "InventoryItem",
    "ItemCondition",
    "Loan",
    "LoanItem",
    "LoanStatus",
    "TERMINAL_STATUSES",
    "can_transition",
    "ReminderSetting",
    "ReminderType",
    "NotificationHistoryEntry",
    "NotificationOrigin",
    "NotificationStatus",
    "DEFAULT_PERIODIC_MONTHS",
    "DEFAULT_REMINDER_TITLE",
    "ApiEnvelope",
    "Pagination",
    "InventoryPayload",
    "InventoryRequest",
    "PhotoPayload",
    "LoanPayload",
    "LoanItemPayload",
    "LoanPhotoPayload",
    "LoanInventoryRef",
    "LoanCreateRequest",
    "LoanItemRequest",
    "LoanStatusRequest",
    "LoanUpdateRequest",
    "ReminderPayload",
    "ReminderRequest",
    "NotificationPayload",
    "NotificationHistoryRequest",
]
