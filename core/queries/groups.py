"""Group-related database queries using SQLAlchemy Core."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncConnection

from ..tables import groups, push_subscriptions, user_groups, users

SCHEDULE_FIELDS = (
    "frequency",
    "interval_mode",
    "schedule_days",
    "schedule_times",
    "quiet_hours_start",
    "quiet_hours_end",
    "owner_timezone",
)


def group_users_with_subscriptions(rows) -> list[dict[str, Any]]:
    """
    Fold user+subscription join rows into one dict per user.

    Each user dict gets a "subscriptions" list of {endpoint, p256dh, auth};
    users from an outer join with no subscription get an empty list.
    Row order is preserved.
    """
    result: dict[int, dict[str, Any]] = {}
    for row in rows:
        user_id = row["user_id"]
        if user_id not in result:
            result[user_id] = {
                "user_id": user_id,
                "email": row["email"],
                "timezone": row["timezone"],
                "last_notified_at": row["last_notified_at"],
                "notification_frequency": row["notification_frequency"],
                "subscriptions": [],
            }
        if row["endpoint"] is not None:
            result[user_id]["subscriptions"].append(
                {
                    "endpoint": row["endpoint"],
                    "p256dh": row["p256dh"],
                    "auth": row["auth"],
                }
            )
    return list(result.values())


async def get_group(conn: AsyncConnection, group_id: int) -> dict[str, Any] | None:
    """Get a group by ID."""
    result = await conn.execute(select(groups).where(groups.c.group_id == group_id))
    row = result.mappings().first()
    return dict(row) if row else None


async def get_due_groups(
    conn: AsyncConnection,
    now: datetime,
) -> list[dict[str, Any]]:
    """Get groups whose next ping is due (next_ping_time <= now), oldest first."""
    result = await conn.execute(
        select(groups)
        .where(groups.c.next_ping_time <= now)
        .order_by(groups.c.next_ping_time, groups.c.group_id)
    )
    return [dict(row) for row in result.mappings()]


async def get_unscheduled_groups(conn: AsyncConnection) -> list[dict[str, Any]]:
    """Get groups that have never been scheduled (next_ping_time IS NULL)."""
    result = await conn.execute(
        select(groups)
        .where(groups.c.next_ping_time.is_(None))
        .order_by(groups.c.group_id)
    )
    return [dict(row) for row in result.mappings()]


async def get_group_members_with_subscriptions(
    conn: AsyncConnection,
    group_id: int,
) -> list[dict[str, Any]]:
    """
    Get a group's members with their push subscriptions.

    Returns:
        [{"user_id", "email", "timezone", "last_notified_at",
          "notification_frequency", "subscriptions": [...]}, ...]
    """
    query = (
        select(
            users.c.user_id,
            users.c.email,
            users.c.timezone,
            users.c.last_notified_at,
            users.c.notification_frequency,
            push_subscriptions.c.endpoint,
            push_subscriptions.c.p256dh,
            push_subscriptions.c.auth,
        )
        .select_from(
            user_groups.join(users, user_groups.c.user_id == users.c.user_id).outerjoin(
                push_subscriptions,
                push_subscriptions.c.user_id == users.c.user_id,
            )
        )
        .where(user_groups.c.group_id == group_id)
        .order_by(users.c.user_id, push_subscriptions.c.subscription_id)
    )
    result = await conn.execute(query)
    return group_users_with_subscriptions(result.mappings())


async def set_group_next_ping_time(
    conn: AsyncConnection,
    group_id: int,
    next_ping_time: datetime,
) -> None:
    """Store an initial next_ping_time for a group."""
    await conn.execute(
        update(groups)
        .where(groups.c.group_id == group_id)
        .values(next_ping_time=next_ping_time)
    )


async def record_group_ping(
    conn: AsyncConnection,
    group_id: int,
    pinged_at: datetime,
    next_ping_time: datetime,
) -> None:
    """Mark a group as pinged and store when its next ping is due."""
    await conn.execute(
        update(groups)
        .where(groups.c.group_id == group_id)
        .values(
            last_ping_time=pinged_at,
            next_ping_time=next_ping_time,
            updated_at=pinged_at,
        )
    )


async def update_group_settings(
    conn: AsyncConnection,
    group_id: int,
    **updates: Any,
) -> dict[str, Any] | None:
    """
    Update a group's notification settings and return the updated record.

    Changing any scheduling field clears next_ping_time so the next ping
    cycle re-initializes it from the new settings.
    """
    updates["updated_at"] = datetime.now(timezone.utc)
    if any(field in updates for field in SCHEDULE_FIELDS):
        updates["next_ping_time"] = None

    result = await conn.execute(
        update(groups)
        .where(groups.c.group_id == group_id)
        .values(**updates)
        .returning(groups)
    )
    row = result.mappings().first()
    return dict(row) if row else None
