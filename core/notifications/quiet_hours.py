"""Quiet hours - per-timezone do-not-disturb windows."""

from datetime import datetime, timezone

from core.timezone import to_local


def is_quiet_hours(
    quiet_hours_start: int | None,
    quiet_hours_end: int | None,
    tz_name: str | None,
    now: datetime | None = None,
) -> bool:
    """
    Check if `now` falls inside a quiet-hours window in the given timezone.

    Granularity is whole hours: the local minute is ignored, so with a
    window of 22-7 the time 06:59 is quiet and 07:00 is not.

    Args:
        quiet_hours_start: First quiet hour (0-23), None = no quiet hours
        quiet_hours_end: First hour after the window (0-23), None = no quiet hours
        tz_name: Timezone of the recipient; None means UTC
        now: Instant to check (defaults to the current time)

    Raises:
        ConfigurationError: If tz_name is not a known timezone
    """
    if quiet_hours_start is None or quiet_hours_end is None:
        return False

    current_hour = to_local(now or datetime.now(timezone.utc), tz_name).hour

    # Window spans midnight (e.g., 23:00 to 07:00)
    if quiet_hours_start > quiet_hours_end:
        return current_hour >= quiet_hours_start or current_hour < quiet_hours_end

    return quiet_hours_start <= current_hour < quiet_hours_end
