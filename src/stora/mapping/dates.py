"""
Date normalization between the display and wire formats.

Display values are ``dd/MM/yyyy`` with an optional ``HH:mm``. Wire values are
``yyyy-MM-dd`` with an optional ``HH:mm:ss``, and the backend may also send
ISO ``T`` forms with fractional seconds and a ``Z`` or offset suffix.
Instants are epoch milliseconds interpreted in local time.
"""

from __future__ import annotations

import calendar
import math
from datetime import date, datetime, time, timedelta

DISPLAY_DATE = "%d/%m/%Y"
DISPLAY_DATETIME = "%d/%m/%Y %H:%M"
WIRE_DATE = "%Y-%m-%d"
WIRE_DATETIME = "%Y-%m-%d %H:%M:%S"

# Anything above this is taken to be milliseconds rather than seconds
_MILLIS_THRESHOLD = 100_000_000_000

# Failures of datetime conversion for instants outside the platform range
_RANGE_ERRORS = (OverflowError, OSError, ValueError)


def parse_display(value: str | None) -> tuple[datetime, bool] | None:
    """Parse a display value; returns (datetime, has_time) or None."""
    text = (value or "").strip()
    for fmt, has_time in ((DISPLAY_DATETIME, True), (DISPLAY_DATE, False)):
        try:
            return datetime.strptime(text, fmt), has_time
        except ValueError:
            continue
    return None


def parse_wire(value: str | None) -> tuple[datetime, bool] | None:
    """
    Parse a wire value; returns (naive local datetime, has_time) or None.

    Zone-qualified values are converted to local time.
    """
    text = (value or "").strip()
    if len(text) < 10 or text[4] != "-":
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        try:
            parsed = parsed.astimezone().replace(tzinfo=None)
        except _RANGE_ERRORS:
            return None
    return parsed, len(text) > 10


def to_wire_date(display: str | None) -> str:
    """``dd/MM/yyyy[ HH:mm]`` to ``yyyy-MM-dd[ HH:mm:ss]``; other input passes through."""
    parsed = parse_display(display)
    if parsed is None:
        return display or ""
    moment, has_time = parsed
    return moment.strftime(WIRE_DATETIME if has_time else WIRE_DATE)


def to_display_date(wire: str | None) -> str:
    """Wire date or datetime to display format; other input passes through."""
    parsed = parse_wire(wire)
    if parsed is None:
        return wire or ""
    moment, has_time = parsed
    return moment.strftime(DISPLAY_DATETIME if has_time else DISPLAY_DATE)


def to_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def from_millis(millis: int) -> datetime:
    return datetime.fromtimestamp(millis / 1000)


def _representable(millis: int) -> bool:
    try:
        from_millis(millis)
    except _RANGE_ERRORS:
        return False
    return True


def to_wire_datetime(millis: int | None) -> str | None:
    """Epoch millis to ``yyyy-MM-dd HH:mm:ss`` in local time."""
    if millis is None or not _representable(millis):
        return None
    return from_millis(millis).strftime(WIRE_DATETIME)


def parse_instant(value: str | int | float | None) -> int | None:
    """
    Best-effort conversion to epoch millis.

    Accepts epoch millis, epoch seconds (numbers or digit strings), wire
    dates and display dates. Returns None when nothing matches, and for
    non-finite numbers or instants outside the datetime range.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            parsed = parse_wire(text) or parse_display(text)
            if parsed is None:
                return None
            try:
                return to_millis(parsed[0])
            except _RANGE_ERRORS:
                return None
    if not math.isfinite(number):
        return None
    millis = int(number) if number >= _MILLIS_THRESHOLD else int(number * 1000)
    return millis if _representable(millis) else None


def day_bounds(millis: int) -> tuple[int, int]:
    """
    First and last millisecond of the local calendar day containing ``millis``.

    An instant outside the datetime range is its own window.
    """
    try:
        start = datetime.combine(from_millis(millis).date(), time.min)
        end = start + timedelta(days=1)
        return to_millis(start), to_millis(end) - 1
    except _RANGE_ERRORS:
        return millis, millis


def add_months(millis: int, months: int) -> int:
    """
    Shift an instant by whole calendar months, keeping the time of day.

    The day of month is clamped to the last day of the target month, so
    Jan 31 plus one month is Feb 28 (or 29). Instants that are, or would
    land, outside the datetime range are returned unchanged.
    """
    if not _representable(millis):
        return millis
    moment = from_millis(millis)
    index = moment.month - 1 + months
    year = moment.year + index // 12
    month = index % 12 + 1
    try:
        day = min(moment.day, calendar.monthrange(year, month)[1])
        return to_millis(moment.replace(year=year, month=month, day=day))
    except _RANGE_ERRORS:
        return millis


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time(23, 59, 59))


def is_late(returned: str, due: str) -> bool:
    """
    Whether a return (display format) falls after the due date.

    A due date without a time counts until 23:59:59 of that day. Unparseable
    values are never late.
    """
    returned_at = parse_display(returned)
    due_at = parse_display(due)
    if returned_at is None or due_at is None:
        return False
    deadline, has_time = due_at
    if not has_time:
        deadline = end_of_day(deadline.date())
    return returned_at[0] > deadline


def now_display(moment: datetime | None = None) -> str:
    """Display datetime for ``moment`` (defaults to now)."""
    return (moment or datetime.now()).strftime(DISPLAY_DATETIME)
