"""Push subscription queries using SQLAlchemy Core."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncConnection

from ..tables import push_subscriptions


def build_upsert_statement(
    user_id: int,
    endpoint: str,
    p256dh: str,
    auth: str,
    session_id: str | None = None,
):
    """
    INSERT ... ON CONFLICT (endpoint) DO UPDATE for a subscription.

    Re-registering an endpoint replaces its key material and moves it to the
    registering user and session, so concurrent re-subscriptions never
    produce two rows.
    """
    stmt = insert(push_subscriptions).values(
        user_id=user_id,
        session_id=session_id,
        endpoint=endpoint,
        p256dh=p256dh,
        auth=auth,
    )
    return stmt.on_conflict_do_update(
        index_elements=[push_subscriptions.c.endpoint],
        set_={
            "user_id": stmt.excluded.user_id,
            "session_id": stmt.excluded.session_id,
            "p256dh": stmt.excluded.p256dh,
            "auth": stmt.excluded.auth,
            "updated_at": datetime.now(timezone.utc),
        },
    ).returning(push_subscriptions)


async def upsert_push_subscription(
    conn: AsyncConnection,
    user_id: int,
    endpoint: str,
    p256dh: str,
    auth: str,
    session_id: str | None = None,
) -> dict[str, Any]:
    """Create or refresh a push subscription and return the stored record."""
    result = await conn.execute(
        build_upsert_statement(user_id, endpoint, p256dh, auth, session_id)
    )
    return dict(result.mappings().first())


async def delete_push_subscription(
    conn: AsyncConnection,
    endpoint: str,
    user_id: int | None = None,
) -> bool:
    """
    Delete a subscription by endpoint.

    Args:
        endpoint: Subscription endpoint URL
        user_id: If given, only delete when owned by this user

    Returns:
        True if a row was deleted
    """
    stmt = delete(push_subscriptions).where(push_subscriptions.c.endpoint == endpoint)
    if user_id is not None:
        stmt = stmt.where(push_subscriptions.c.user_id == user_id)
    result = await conn.execute(stmt)
    return result.rowcount > 0


async def delete_session_subscriptions(
    conn: AsyncConnection,
    session_id: str,
) -> int:
    """Delete every subscription registered under a session. Returns the count."""
    result = await conn.execute(
        delete(push_subscriptions).where(push_subscriptions.c.session_id == session_id)
    )
    return result.rowcount


async def list_user_subscriptions(
    conn: AsyncConnection,
    user_id: int,
) -> list[dict[str, Any]]:
    """Get all of a user's subscriptions, oldest first."""
    result = await conn.execute(
        select(push_subscriptions)
        .where(push_subscriptions.c.user_id == user_id)
        .order_by(push_subscriptions.c.subscription_id)
    )
    return [dict(row) for row in result.mappings()]
