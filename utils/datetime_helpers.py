"""Timezone-aware date/time helpers for the equipment scheduler."""

from datetime import date, datetime, time
from zoneinfo import ZoneInfo

from flask import current_app

DB_DATETIME_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_timezone() -> ZoneInfo:
    """Get the configured timezone."""
    tz_name = current_app.config.get('TIMEZONE', 'Europe/Stockholm')
    return ZoneInfo(tz_name)


def get_today() -> date:
    """Get today's date in the configured timezone."""
    return get_now().date()


def get_now() -> datetime:
    """
    Get current local time in the configured timezone.

    Returned naive, matching how datetimes are stored.
    """
    return datetime.now(get_timezone()).replace(tzinfo=None, microsecond=0)


def parse_datetime(value) -> datetime:
    """
    Parse a stored or user-supplied datetime.

    Accepts datetime objects, 'YYYY-MM-DD HH:MM[:SS]' and ISO 'T'-separated
    strings. Aware values are converted to the configured timezone and made
    naive.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip())
    else:
        raise ValueError(f"Invalid datetime: {value!r}")

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(get_timezone()).replace(tzinfo=None)
    return parsed.replace(microsecond=0)


def to_db_datetime(value: datetime) -> str:
    """Format a datetime for storage; lexical order equals chronological order."""
    return value.strftime(DB_DATETIME_FORMAT)


def parse_time_of_day(value) -> time:
    """
    Parse 'HH:MM' into a time.

    Raises:
        ValueError: If the value is not a valid time of day
    """
    if isinstance(value, time):
        return value
    return datetime.strptime(str(value).strip(), '%H:%M').time()
