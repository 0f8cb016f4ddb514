"""User-related database queries using SQLAlchemy Core."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncConnection

from ..tables import push_subscriptions, users
from .groups import group_users_with_subscriptions


async def get_user_by_id(
    conn: AsyncConnection,
    user_id: int,
) -> dict[str, Any] | None:
    """Get a user by ID."""
    result = await conn.execute(select(users).where(users.c.user_id == user_id))
    row = result.mappings().first()
    return dict(row) if row else None


async def update_user(
    conn: AsyncConnection,
    user_id: int,
    **updates: Any,
) -> dict[str, Any] | None:
    """Update a user by ID and return the updated record."""
    updates["updated_at"] = datetime.now(timezone.utc)
    result = await conn.execute(
        update(users)
        .where(users.c.user_id == user_id)
        .values(**updates)
        .returning(users)
    )
    row = result.mappings().first()
    return dict(row) if row else None


async def mark_user_notified(
    conn: AsyncConnection,
    user_id: int,
    notified_at: datetime,
) -> None:
    """Set a user's last_notified_at."""
    await conn.execute(
        update(users)
        .where(users.c.user_id == user_id)
        .values(last_notified_at=notified_at)
    )


async def get_solo_users_with_subscriptions(
    conn: AsyncConnection,
) -> list[dict[str, Any]]:
    """
    Get users without an active group who hold at least one push subscription.

    Returns:
        Same shape as get_group_members_with_subscriptions()
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
            users.join(push_subscriptions, push_subscriptions.c.user_id == users.c.user_id)
        )
        .where(users.c.active_group_id.is_(None))
        .order_by(users.c.user_id, push_subscriptions.c.subscription_id)
    )
    result = await conn.execute(query)
    return group_users_with_subscriptions(result.mappings())
