"""
Ping interval scheduling - decides when a group's next check-in prompt is due.

Two modes:
- random: exponentially distributed gaps (a Poisson process) averaging
  `frequency` pings per week, clamped to [1h, min(1.25 * mean, 72h)]
- fixed: the next (weekday, hour) slot in the owner's timezone

Malformed inputs never raise out of this module; they fall back to the
documented defaults and are logged.
"""

import logging
import math
import random
from datetime import datetime, timedelta, timezone

from core.enums import IntervalMode
from core.exceptions import SchedulingInputError
from core.timezone import (
    ensure_utc,
    is_valid_timezone,
    local_date_after,
    local_to_utc,
    sunday_first_weekday,
    to_local,
)

logger = logging.getLogger(__name__)


HOURS_PER_WEEK = 7 * 24
DEFAULT_GROUP_FREQUENCY = 2

MIN_INTERVAL_HOURS = 1
MAX_INTERVAL_HOURS = 72
INTERVAL_CAP_FACTOR = 1.25

# New random-mode groups get their first ping soon, not after a full interval
FIRST_PING_MIN_HOURS = 1
FIRST_PING_MAX_HOURS = 5

DEFAULT_SCHEDULE_HOUR = 9
# A slot in the current hour is only still eligible before hh:30
SAME_HOUR_CUTOFF_MINUTE = 30
SEARCH_DAYS = 7

# Weekday indices are Sunday-first: 0 = Sunday ... 6 = Saturday
FREQUENCY_SCHEDULE_DAYS = {
    7: [0, 1, 2, 3, 4, 5, 6],
    3: [1, 3, 5],  # Mon, Wed, Fri
    2: [1, 4],  # Mon, Thu
    1: [3],  # Wed
}
DEFAULT_SCHEDULE_DAYS = FREQUENCY_SCHEDULE_DAYS[1]


# =============================================================================
# Input validation
# =============================================================================


def validate_frequency(frequency) -> int:
    """
    Check a pings-per-week value.

    Raises:
        SchedulingInputError: If frequency is not a positive integer
    """
    if isinstance(frequency, bool) or not isinstance(frequency, int) or frequency <= 0:
        raise SchedulingInputError(f"frequency must be a positive integer, got {frequency!r}")
    return frequency


def validate_schedule_values(values, upper: int, label: str) -> list[int]:
    """
    Check a list of weekday (upper=6) or hour (upper=23) values.

    Raises:
        SchedulingInputError: If any value is not an int in [0, upper]
    """
    if values is None:
        return []
    result = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= upper:
            raise SchedulingInputError(f"{label} values must be 0-{upper}, got {value!r}")
        result.append(value)
    return result


def normalize_frequency(frequency) -> int:
    """Validated frequency, or the group default if invalid."""
    try:
        return validate_frequency(frequency)
    except SchedulingInputError as e:
        logger.warning(f"{e}; using default frequency {DEFAULT_GROUP_FREQUENCY}")
        return DEFAULT_GROUP_FREQUENCY


def _normalize_values(values, upper: int, label: str) -> list[int]:
    """Keep only the in-range values, logging anything dropped."""
    if not values:
        return []
    kept = [
        v for v in values
        if not isinstance(v, bool) and isinstance(v, int) and 0 <= v <= upper
    ]
    if len(kept) != len(values):
        logger.warning(f"Ignoring invalid {label} values in {list(values)!r}")
    return kept


def _normalize_mode(interval_mode) -> IntervalMode:
    try:
        return IntervalMode(interval_mode)
    except ValueError:
        logger.warning(f"Unknown interval mode {interval_mode!r}; using random")
        return IntervalMode.random


def _normalize_timezone(owner_timezone: str | None) -> str:
    if not owner_timezone:
        return "UTC"
    if not is_valid_timezone(owner_timezone):
        logger.warning(f"Unknown owner timezone {owner_timezone!r}; scheduling in UTC")
        return "UTC"
    return owner_timezone


# =============================================================================
# Random mode
# =============================================================================


def expected_interval_hours(frequency: int) -> float:
    """Mean hours between pings for `frequency` pings per week."""
    return HOURS_PER_WEEK / frequency


def random_interval_hours(frequency: int, rng: random.Random | None = None) -> float:
    """
    Draw a gap from an exponential distribution with mean 168/frequency hours.

    Uses inverse-CDF sampling, -ln(1 - u) * mean, then clamps to
    [1, min(1.25 * mean, 72)] hours.
    """
    rng = rng or random
    expected = expected_interval_hours(frequency)
    u = rng.random()
    raw_hours = -math.log(1 - u) * expected
    capped = min(raw_hours, expected * INTERVAL_CAP_FACTOR, MAX_INTERVAL_HOURS)
    return max(MIN_INTERVAL_HOURS, capped)


# =============================================================================
# Fixed mode
# =============================================================================


def get_schedule_days_from_frequency(frequency: int) -> list[int]:
    """
    Weekdays used by fixed mode when the group hasn't chosen days.

    7 -> every day, 3 -> Mon/Wed/Fri, 2 -> Mon/Thu, anything else -> Wed.
    """
    return list(FREQUENCY_SCHEDULE_DAYS.get(frequency, DEFAULT_SCHEDULE_DAYS))


def find_next_scheduled_time(
    now: datetime,
    schedule_days: list[int],
    schedule_times: list[int],
    owner_timezone: str = "UTC",
) -> datetime:
    """
    Find the next (weekday, hour) slot after `now` in the owner's timezone.

    Scans today and the following seven days. On today, hours before the
    current local hour are skipped, as is the current hour once the local
    minute reaches 30.

    Args:
        now: Current instant
        schedule_days: Weekdays, 0 = Sunday ... 6 = Saturday
        schedule_times: Local hours, 0-23
        owner_timezone: Timezone the slots are expressed in

    Returns:
        Aware UTC datetime strictly after now (now + 1h if nothing matches)
    """
    now = ensure_utc(now)
    if not schedule_days or not schedule_times:
        return now + timedelta(hours=1)

    days = set(schedule_days)
    hours = sorted(set(schedule_times))
    local_now = to_local(now, owner_timezone)

    for day_offset in range(SEARCH_DAYS + 1):
        target_date = local_date_after(local_now, day_offset)
        if sunday_first_weekday(target_date) not in days:
            continue

        for hour in hours:
            if day_offset == 0:
                if hour < local_now.hour or (
                    hour == local_now.hour
                    and local_now.minute >= SAME_HOUR_CUTOFF_MINUTE
                ):
                    continue

            candidate = local_to_utc(target_date, hour, owner_timezone)
            if candidate > now:
                return candidate

    return now + timedelta(hours=1)


def _fixed_next_ping(
    frequency: int,
    schedule_days,
    schedule_times,
    owner_timezone: str,
    now: datetime,
) -> datetime:
    days = _normalize_values(schedule_days, 6, "schedule_days")
    times = _normalize_values(schedule_times, 23, "schedule_times")
    if not days:
        days = get_schedule_days_from_frequency(frequency)
    if not times:
        times = [DEFAULT_SCHEDULE_HOUR]
    return find_next_scheduled_time(now, days, times, owner_timezone)


# =============================================================================
# Public API
# =============================================================================


def calculate_next_ping_time(
    frequency: int,
    interval_mode: IntervalMode | str,
    schedule_days: list[int] | None = None,
    schedule_times: list[int] | None = None,
    owner_timezone: str | None = None,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> datetime:
    """
    Compute the next ping instant after a ping has been sent.

    Args:
        frequency: Pings per week
        interval_mode: "random" or "fixed"
        schedule_days: Fixed-mode weekdays (0 = Sunday); empty = derive from frequency
        schedule_times: Fixed-mode local hours; empty = 09:00
        owner_timezone: Timezone for fixed-mode slots; None = UTC
        now: Current instant (defaults to now)
        rng: Random source for random mode (tests pass a seeded one)

    Returns:
        Aware UTC datetime strictly after now
    """
    now = ensure_utc(now or datetime.now(timezone.utc))
    frequency = normalize_frequency(frequency)

    if _normalize_mode(interval_mode) == IntervalMode.fixed:
        return _fixed_next_ping(
            frequency,
            schedule_days,
            schedule_times,
            _normalize_timezone(owner_timezone),
            now,
        )

    return now + timedelta(hours=random_interval_hours(frequency, rng))


def initialize_next_ping_time(
    frequency: int,
    interval_mode: IntervalMode | str,
    schedule_days: list[int] | None = None,
    schedule_times: list[int] | None = None,
    owner_timezone: str | None = None,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> datetime:
    """
    Compute the first ping instant for a group that has never been scheduled.

    Fixed mode uses the normal slot search. Random mode schedules the first
    ping 1-5 hours out (uniform) regardless of frequency.
    """
    now = ensure_utc(now or datetime.now(timezone.utc))
    frequency = normalize_frequency(frequency)

    if _normalize_mode(interval_mode) == IntervalMode.fixed:
        return _fixed_next_ping(
            frequency,
            schedule_days,
            schedule_times,
            _normalize_timezone(owner_timezone),
            now,
        )

    rng = rng or random
    hours_until_first = rng.uniform(FIRST_PING_MIN_HOURS, FIRST_PING_MAX_HOURS)
    return now + timedelta(hours=hours_until_first)


def next_ping_time_for_group(
    group: dict,
    now: datetime | None = None,
    initialize: bool = False,
    rng: random.Random | None = None,
) -> datetime:
    """Compute a group row's next (or first, with initialize=True) ping instant."""
    compute = initialize_next_ping_time if initialize else calculate_next_ping_time
    return compute(
        frequency=group.get("frequency"),
        interval_mode=group.get("interval_mode") or IntervalMode.random,
        schedule_days=group.get("schedule_days"),
        schedule_times=group.get("schedule_times"),
        owner_timezone=group.get("owner_timezone"),
        now=now,
        rng=rng,
    )
