# File: utils/dt_utils.py
"""Date and time utilities for the reminder scheduler.

Pure Python date/time functions. Parsing here is STRICT: malformed strings and
non-existent calendar dates return None instead of being coerced into some
nearby value. Callers decide which validation error to raise.

Functions:
    - set_default_timezone / get_default_timezone: Configure local timezone
    - dt_now_utc / dt_now_local / dt_today_local: Current date/time
    - as_utc / as_local / start_of_local_day: Timezone conversion
    - is_iso_date_format / dt_parse_date: Strict YYYY-MM-DD parsing
    - is_clock_time_format / dt_parse_time: Strict 24-hour HH:mm parsing
    - dt_split_due: Strict "YYYY-MM-DD[THH:mm]" parsing into (date, time)
    - dt_format_date / dt_format_time: Canonical string forms
    - days_in_month / clamp_to_month / add_months_clamped: Month arithmetic
    - occurrence_moment: Combine an occurrence date and time into a datetime
"""

from __future__ import annotations

from calendar import monthrange
from datetime import UTC, date, datetime, time
import logging
import re
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

# Module-level logger
_LOGGER = logging.getLogger(__name__)

# ==============================================================================
# Constants (local copies to avoid circular imports)
# ==============================================================================

# Default timezone - can be overridden by caller
DEFAULT_TIME_ZONE: ZoneInfo = ZoneInfo("UTC")

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_CLOCK_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_DUE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:[T ](\d{1,2}:\d{2}))?$")


# ==============================================================================
# Timezone Configuration
# ==============================================================================


def set_default_timezone(tz: ZoneInfo) -> None:
    """Set the default timezone used to interpret task moments.

    Args:
        tz: ZoneInfo object representing the default timezone
    """
    global DEFAULT_TIME_ZONE  # noqa: PLW0603
    DEFAULT_TIME_ZONE = tz


def get_default_timezone() -> ZoneInfo:
    """Get the current default timezone."""
    return DEFAULT_TIME_ZONE


# ==============================================================================
# Current Date/Time Functions
# ==============================================================================


def dt_now_utc() -> datetime:
    """Return the current datetime in UTC (timezone-aware)."""
    return datetime.now(UTC)


def dt_now_local(tz: ZoneInfo | None = None) -> datetime:
    """Return the current datetime in local timezone (timezone-aware).

    Args:
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.
    """
    return datetime.now(tz or DEFAULT_TIME_ZONE)


def dt_today_local(tz: ZoneInfo | None = None) -> date:
    """Return today's date in local timezone."""
    return dt_now_local(tz).date()


# ==============================================================================
# Timezone Conversion
# ==============================================================================


def as_utc(dt_obj: datetime) -> datetime:
    """Convert a datetime to UTC timezone.

    Naive datetimes are assumed to be in DEFAULT_TIME_ZONE.
    """
    if dt_obj.tzinfo is None:
        dt_obj = dt_obj.replace(tzinfo=DEFAULT_TIME_ZONE)
    return dt_obj.astimezone(UTC)


def as_local(dt_obj: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Convert a datetime to local timezone.

    Naive datetimes are assumed to already be local.

    Args:
        dt_obj: Datetime object
        tz: Optional timezone override. Uses DEFAULT_TIME_ZONE if not provided.
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    if dt_obj.tzinfo is None:
        return dt_obj.replace(tzinfo=tz_info)
    return dt_obj.astimezone(tz_info)


def start_of_local_day(dt_obj: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Get the start of day (00:00:00) for a datetime in local timezone."""
    local_dt = as_local(dt_obj, tz)
    return local_dt.replace(hour=0, minute=0, second=0, microsecond=0)


# ==============================================================================
# Strict Parsing
# ==============================================================================


def is_iso_date_format(value: object) -> bool:
    """Return True if value is a string shaped exactly like YYYY-MM-DD.

    Shape only: "2025-02-30" passes here and is rejected by dt_parse_date.
    """
    return isinstance(value, str) and _ISO_DATE_RE.match(value) is not None


def dt_parse_date(date_str: object) -> date | None:
    """Strictly parse a YYYY-MM-DD string into a `datetime.date`.

    Returns:
        The date, or None if the string is malformed or names a day that
        does not exist (e.g. "2025-02-30").

    Example:
        >>> dt_parse_date("2024-02-29")
        datetime.date(2024, 2, 29)
        >>> dt_parse_date("2023-02-29") is None
        True
    """
    if not isinstance(date_str, str):
        return None
    match = _ISO_DATE_RE.match(date_str)
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        _LOGGER.debug("Rejected non-existent calendar date: %s", date_str)
        return None


def is_clock_time_format(value: object) -> bool:
    """Return True if value is a valid 24-hour HH:mm string."""
    return isinstance(value, str) and _CLOCK_TIME_RE.match(value) is not None


def dt_parse_time(time_str: object) -> time | None:
    """Strictly parse a 24-hour HH:mm string into a `datetime.time`.

    A single-digit hour ("9:05") is accepted; minutes always need two digits.
    """
    if not isinstance(time_str, str):
        return None
    match = _CLOCK_TIME_RE.match(time_str)
    if not match:
        return None
    return time(int(match.group(1)), int(match.group(2)))


def dt_split_due(value: object) -> tuple[str, str | None] | None:
    """Split a due string into its date and optional time parts.

    Accepts "YYYY-MM-DD", "YYYY-MM-DDTHH:mm" and "YYYY-MM-DD HH:mm". The parts
    are returned unparsed so each can be validated with its own error.

    Returns:
        (date_part, time_part_or_None), or None if the shape is wrong.
    """
    if not isinstance(value, str):
        return None
    match = _DUE_RE.match(value.strip())
    if not match:
        return None
    return match.group(1), match.group(2)


# ==============================================================================
# Formatting
# ==============================================================================


def dt_format_date(value: date) -> str:
    """Return the canonical YYYY-MM-DD form."""
    return value.isoformat()


def dt_format_time(value: time) -> str:
    """Return the canonical zero-padded HH:mm form."""
    return f"{value.hour:02d}:{value.minute:02d}"


# ==============================================================================
# Month Arithmetic
# ==============================================================================


def days_in_month(year: int, month: int) -> int:
    """Return the number of days in the given month."""
    return monthrange(year, month)[1]


def clamp_to_month(year: int, month: int, day: int) -> date:
    """Build a date, clamping day to the last valid day of the month.

    Example:
        >>> clamp_to_month(2025, 2, 31)
        datetime.date(2025, 2, 28)
    """
    return date(year, month, min(day, days_in_month(year, month)))


def add_months_clamped(
    base: date, months: int, basis_day: int | None = None
) -> date:
    """Add months to a date, clamping to the last day of the target month.

    Args:
        base: Starting date.
        months: Months to add (can be negative).
        basis_day: Day-of-month to aim for. Defaults to base.day. Passing the
            original anchor day lets a series recover from an earlier clamp
            (Jan 31 -> Feb 29 -> Mar 31).

    Returns:
        The shifted date. Never rolls over into the following month.
    """
    shifted = base + relativedelta(months=months)
    target_day = basis_day if basis_day is not None else base.day
    return clamp_to_month(shifted.year, shifted.month, target_day)


# ==============================================================================
# Occurrence Moments
# ==============================================================================


def occurrence_moment(
    occurrence_date: date,
    occurrence_time: time | None = None,
    tz: ZoneInfo | None = None,
) -> datetime:
    """Combine an occurrence date and optional time into an aware datetime.

    All-day occurrences (no time) map to the start of their local day.
    """
    tz_info = tz or DEFAULT_TIME_ZONE
    return datetime.combine(occurrence_date, occurrence_time or time.min, tz_info)
