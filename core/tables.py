"""SQLAlchemy Core table definitions for the database schema."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, TIMESTAMP

from .enums import interval_mode_enum

# Naming convention for constraints (helps Alembic generate better names)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
metadata = MetaData(naming_convention=convention)


# =====================================================
# 1. USERS
# =====================================================
users = Table(
    "users",
    metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=True),
    Column("email", Text, nullable=False),
    Column("display_name", Text),
    Column("timezone", Text),  # IANA zone id, NULL = UTC
    Column("last_notified_at", TIMESTAMP(timezone=True)),
    # Solo cadence in days between pings; only used while active_group_id is NULL
    Column("notification_frequency", Integer, server_default="1", nullable=False),
    Column(
        "active_group_id",
        Integer,
        ForeignKey("groups.group_id", ondelete="SET NULL", use_alter=True),
    ),
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    CheckConstraint(
        "notification_frequency IN (1, 2, 3, 7)", name="notification_frequency"
    ),
    Index("idx_users_email", "email", unique=True),
    Index("idx_users_active_group_id", "active_group_id"),
)


# =====================================================
# 2. GROUPS
# =====================================================
groups = Table(
    "groups",
    metadata,
    Column("group_id", Integer, primary_key=True, autoincrement=True),
    Column("group_name", Text, nullable=False),
    Column(
        "owner_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("frequency", Integer, server_default="2", nullable=False),  # pings per week
    Column("interval_mode", interval_mode_enum, server_default="random", nullable=False),
    Column("schedule_days", ARRAY(Integer)),  # 0 = Sunday ... 6 = Saturday
    Column("schedule_times", ARRAY(Integer)),  # hours 0-23, owner-local
    Column("quiet_hours_start", Integer),
    Column("quiet_hours_end", Integer),
    Column("owner_timezone", Text, server_default="UTC"),
    Column("notification_title", Text),  # NULL = default payload
    Column("notification_body", Text),
    Column("last_ping_time", TIMESTAMP(timezone=True)),
    Column("next_ping_time", TIMESTAMP(timezone=True)),  # NULL until initialized
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    CheckConstraint("frequency > 0", name="frequency_positive"),
    CheckConstraint(
        "quiet_hours_start IS NULL OR quiet_hours_start BETWEEN 0 AND 23",
        name="quiet_hours_start_range",
    ),
    CheckConstraint(
        "quiet_hours_end IS NULL OR quiet_hours_end BETWEEN 0 AND 23",
        name="quiet_hours_end_range",
    ),
    Index("idx_groups_owner_id", "owner_id"),
    Index("idx_groups_next_ping_time", "next_ping_time"),
)


# =====================================================
# 3. USER_GROUPS (memberships)
# =====================================================
user_groups = Table(
    "user_groups",
    metadata,
    Column("user_group_id", Integer, primary_key=True, autoincrement=True),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "group_id",
        Integer,
        ForeignKey("groups.group_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("joined_at", TIMESTAMP(timezone=True), server_default=func.now()),
    UniqueConstraint("user_id", "group_id", name="uq_user_groups_user_group"),
    Index("idx_user_groups_group_id", "group_id"),
)


# =====================================================
# 4. PUSH_SUBSCRIPTIONS
# =====================================================
push_subscriptions = Table(
    "push_subscriptions",
    metadata,
    Column("subscription_id", Integer, primary_key=True, autoincrement=True),
    Column("endpoint", Text, nullable=False, unique=True),
    Column("p256dh", Text, nullable=False),
    Column("auth", Text, nullable=False),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("session_id", Text),  # Auth-provider session, for cleanup on logout
    Column("created_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Column("updated_at", TIMESTAMP(timezone=True), server_default=func.now()),
    Index("idx_push_subscriptions_user_id", "user_id"),
    Index("idx_push_subscriptions_session_id", "session_id"),
)
