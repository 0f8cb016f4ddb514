"""
Timezone conversion utilities.

All conversions go through the pytz timezone database so that DST
transitions are handled by the zone rules, never by fixed offsets.
"""

from datetime import date, datetime, timedelta

import pytz

from .exceptions import ConfigurationError, UnknownTimezoneError

DEFAULT_TIMEZONE = "UTC"


def get_timezone(tz_name: str | None):
    """
    Resolve an IANA timezone id.

    Args:
        tz_name: Timezone string (e.g., "America/New_York"); None or "" means UTC

    Returns:
        pytz timezone object

    Raises:
        UnknownTimezoneError: If the id is not in the timezone database
    """
    if not tz_name:
        return pytz.UTC
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError as e:
        raise UnknownTimezoneError(f"Unknown timezone: {tz_name!r}") from e


def is_valid_timezone(tz_name: str) -> bool:
    """Check whether a timezone id exists in the timezone database."""
    try:
        get_timezone(tz_name)
    except ConfigurationError:
        return False
    return True


def ensure_utc(dt: datetime) -> datetime:
    """Return an aware UTC datetime (naive datetimes are treated as UTC)."""
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def to_local(utc_dt: datetime, tz_name: str | None) -> datetime:
    """
    Convert an instant to local civil time.

    Args:
        utc_dt: Instant (naive datetimes treated as UTC)
        tz_name: Timezone string; None means UTC

    Raises:
        ConfigurationError: If tz_name is unknown
    """
    tz = get_timezone(tz_name)
    return ensure_utc(utc_dt).astimezone(tz)


def sunday_first_weekday(local_dt: datetime | date) -> int:
    """Weekday index with 0 = Sunday ... 6 = Saturday."""
    return local_dt.isoweekday() % 7


def local_to_utc(local_date: date, hour: int, tz_name: str | None) -> datetime:
    """
    Convert a local civil date and hour to a UTC instant.

    Hours skipped by a spring-forward transition resolve with the pre-transition
    offset (so 02:00 on a skipped night lands at 03:00 local); ambiguous
    fall-back hours resolve to the first occurrence.

    Args:
        local_date: Civil date in the target timezone
        hour: Hour in 24-hour format (0-23)
        tz_name: Timezone string; None means UTC

    Returns:
        Aware UTC datetime
    """
    tz = get_timezone(tz_name)
    naive = datetime(local_date.year, local_date.month, local_date.day, hour)
    try:
        local_dt = tz.localize(naive, is_dst=None)
    except pytz.NonExistentTimeError:
        local_dt = tz.normalize(tz.localize(naive, is_dst=False))
    except pytz.AmbiguousTimeError:
        local_dt = tz.localize(naive, is_dst=True)
    return local_dt.astimezone(pytz.UTC)


def local_date_after(local_dt: datetime, days: int) -> date:
    """Civil date `days` after the date of local_dt."""
    return local_dt.date() + timedelta(days=days)


def format_datetime_in_timezone(
    utc_dt: datetime,
    tz_name: str | None,
) -> str:
    """
    Format a UTC datetime in the given timezone with explicit offset.

    Args:
        utc_dt: Datetime in UTC (naive datetimes treated as UTC)
        tz_name: Timezone string (e.g., "America/New_York")

    Returns:
        Formatted string like "Wednesday at 3:00 PM (UTC-5)"
    """
    try:
        local_dt = to_local(utc_dt, tz_name)
    except ConfigurationError:
        local_dt = ensure_utc(utc_dt)

    day_name = local_dt.strftime("%A")
    time_str = local_dt.strftime("%I:%M %p").lstrip("0")  # "3:00 PM" not "03:00 PM"

    # Get UTC offset string (e.g., "UTC+7" or "UTC-5")
    offset = local_dt.strftime("%z")  # "+0700" or "-0500"
    if offset:
        hours = int(offset[:3])
        minutes = int(offset[0] + offset[3:5])
        if minutes == 0:
            offset_str = f"UTC{hours:+d}" if hours != 0 else "UTC"
        else:
            offset_str = f"UTC{hours:+d}:{abs(minutes):02d}"
    else:
        offset_str = "UTC"

    return f"{day_name} at {time_str} ({offset_str})"
