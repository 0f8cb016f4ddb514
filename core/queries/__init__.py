"""Query layer for database operations using SQLAlchemy Core."""

from .groups import (
    get_due_groups,
    get_group,
    get_group_members_with_subscriptions,
    get_unscheduled_groups,
    record_group_ping,
    set_group_next_ping_time,
    update_group_settings,
)
from .push_subscriptions import (
    delete_push_subscription,
    delete_session_subscriptions,
    list_user_subscriptions,
    upsert_push_subscription,
)
from .users import (
    get_solo_users_with_subscriptions,
    get_user_by_id,
    mark_user_notified,
    update_user,
)

__all__ = [
    # Groups
    "get_group",
    "get_due_groups",
    "get_unscheduled_groups",
    "get_group_members_with_subscriptions",
    "set_group_next_ping_time",
    "record_group_ping",
    "update_group_settings",
    # Users
    "get_user_by_id",
    "update_user",
    "mark_user_notified",
    "get_solo_users_with_subscriptions",
    # Push subscriptions
    "upsert_push_subscription",
    "delete_push_subscription",
    "delete_session_subscriptions",
    "list_user_subscriptions",
]
