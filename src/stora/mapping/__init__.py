"""Pure translation between backend payloads and local entities."""

from stora.mapping.dates import (
    add_months,
    day_bounds,
    is_late,
    parse_instant,
    to_display_date,
    to_wire_date,
    to_wire_datetime,
)
from stora.mapping.inventory import assign_local_id, inventory_from_wire, inventory_to_request
from stora.mapping.loans import (
    loan_from_wire,
    loan_status_request,
    loan_to_request,
    loan_update_request,
)
from stora.mapping.photos import local_photo_file, qualify_photo_path
from stora.mapping.reminders import (
    notification_from_wire,
    notification_to_request,
    reminder_from_wire,
    reminder_to_request,
)

__all__ = [
    "add_months",
    "assign_local_id",
    "day_bounds",
    "inventory_from_wire",
    "inventory_to_request",
    "is_late",
    "loan_from_wire",
    "loan_status_request",
    "loan_to_request",
    "loan_update_request",
    "local_photo_file",
    "notification_from_wire",
    "notification_to_request",
    "parse_instant",
    "qualify_photo_path",
    "reminder_from_wire",
    "reminder_to_request",
    "to_display_date",
    "to_wire_date",
    "to_wire_datetime",
]
