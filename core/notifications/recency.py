"""Recency gates - minimum spacing between notifications to the same user."""

import math
from datetime import datetime

from core.enums import NotificationFrequency
from core.notifications.intervals import expected_interval_hours
from core.timezone import ensure_utc

# Group members: never sooner than half the group's expected interval, and
# never within 8 hours
GROUP_MIN_GAP_HOURS = 8
GROUP_MIN_GAP_FRACTION = 0.5

# Solo users: keyed by notification_frequency (days). Daily uses an 8h floor
# rather than 24h so that a drifting cron cadence doesn't skip whole days.
SOLO_MIN_GAP_HOURS = {
    NotificationFrequency.daily: 8,
    NotificationFrequency.every_2_days: 48,
    NotificationFrequency.every_3_days: 72,
    NotificationFrequency.weekly: 168,
}
SOLO_DEFAULT_MIN_GAP_HOURS = 8


def hours_since(last_notified_at: datetime | None, now: datetime) -> float:
    """Hours elapsed since the last notification (infinite if never notified)."""
    if last_notified_at is None:
        return math.inf
    return (ensure_utc(now) - ensure_utc(last_notified_at)).total_seconds() / 3600


def group_min_gap_hours(frequency: int) -> float:
    """Minimum hours between pings for a member of a group with this frequency."""
    return max(
        GROUP_MIN_GAP_HOURS,
        expected_interval_hours(frequency) * GROUP_MIN_GAP_FRACTION,
    )


def solo_min_gap_hours(notification_frequency: int | None) -> float:
    """Minimum hours between pings for a groupless user."""
    try:
        return SOLO_MIN_GAP_HOURS[NotificationFrequency(notification_frequency)]
    except ValueError:
        return SOLO_DEFAULT_MIN_GAP_HOURS


def can_notify_group_member(
    last_notified_at: datetime | None,
    frequency: int,
    now: datetime,
) -> bool:
    return hours_since(last_notified_at, now) >= group_min_gap_hours(frequency)


def can_notify_solo_user(
    last_notified_at: datetime | None,
    notification_frequency: int | None,
    now: datetime,
) -> bool:
    return hours_since(last_notified_at, now) >= solo_min_gap_hours(
        notification_frequency
    )
