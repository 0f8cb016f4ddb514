"""Initial schema: users, groups, memberships and push subscriptions.

Revision ID: 001
Revises:
Create Date: 2026-10-19

users.active_group_id and groups.owner_id reference each other, so the
users -> groups foreign key is added after both tables exist.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

interval_mode = postgresql.ENUM("random", "fixed", name="interval_mode", create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
    ]


def upgrade() -> None:
    interval_mode.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "users",
        sa.Column("user_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("timezone", sa.Text(), nullable=True),
        sa.Column("last_notified_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "notification_frequency",
            sa.Integer(),
            server_default="1",
            nullable=False,
        ),
        sa.Column("active_group_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "notification_frequency IN (1, 2, 3, 7)",
            name=op.f("ck_users_notification_frequency"),
        ),
        sa.PrimaryKeyConstraint("user_id", name=op.f("pk_users")),
    )
    op.create_index("idx_users_email", "users", ["email"], unique=True)
    op.create_index("idx_users_active_group_id", "users", ["active_group_id"], unique=False)

    op.create_table(
        "groups",
        sa.Column("group_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("group_name", sa.Text(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("frequency", sa.Integer(), server_default="2", nullable=False),
        sa.Column("interval_mode", interval_mode, server_default="random", nullable=False),
        sa.Column("schedule_days", postgresql.ARRAY(sa.Integer()), nullable=True),
        sa.Column("schedule_times", postgresql.ARRAY(sa.Integer()), nullable=True),
        sa.Column("quiet_hours_start", sa.Integer(), nullable=True),
        sa.Column("quiet_hours_end", sa.Integer(), nullable=True),
        sa.Column("owner_timezone", sa.Text(), server_default="UTC", nullable=True),
        sa.Column("notification_title", sa.Text(), nullable=True),
        sa.Column("notification_body", sa.Text(), nullable=True),
        sa.Column("last_ping_time", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("next_ping_time", postgresql.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("frequency > 0", name=op.f("ck_groups_frequency_positive")),
        sa.CheckConstraint(
            "quiet_hours_start IS NULL OR quiet_hours_start BETWEEN 0 AND 23",
            name=op.f("ck_groups_quiet_hours_start_range"),
        ),
        sa.CheckConstraint(
            "quiet_hours_end IS NULL OR quiet_hours_end BETWEEN 0 AND 23",
            name=op.f("ck_groups_quiet_hours_end_range"),
        ),
        sa.ForeignKeyConstraint(
            ["owner_id"],
            ["users.user_id"],
            name=op.f("fk_groups_owner_id_users"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("group_id", name=op.f("pk_groups")),
    )
    op.create_index("idx_groups_owner_id", "groups", ["owner_id"], unique=False)
    op.create_index("idx_groups_next_ping_time", "groups", ["next_ping_time"], unique=False)

    op.create_foreign_key(
        op.f("fk_users_active_group_id_groups"),
        "users",
        "groups",
        ["active_group_id"],
        ["group_id"],
        ondelete="SET NULL",
    )

    op.create_table(
        "user_groups",
        sa.Column("user_group_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column(
            "joined_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.user_id"],
            name=op.f("fk_user_groups_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["group_id"],
            ["groups.group_id"],
            name=op.f("fk_user_groups_group_id_groups"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("user_group_id", name=op.f("pk_user_groups")),
        sa.UniqueConstraint("user_id", "group_id", name="uq_user_groups_user_group"),
    )
    op.create_index("idx_user_groups_group_id", "user_groups", ["group_id"], unique=False)

    op.create_table(
        "push_subscriptions",
        sa.Column("subscription_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("endpoint", sa.Text(), nullable=False),
        sa.Column("p256dh", sa.Text(), nullable=False),
        sa.Column("auth", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.user_id"],
            name=op.f("fk_push_subscriptions_user_id_users"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("subscription_id", name=op.f("pk_push_subscriptions")),
        sa.UniqueConstraint("endpoint", name=op.f("uq_push_subscriptions_endpoint")),
    )
    op.create_index(
        "idx_push_subscriptions_user_id", "push_subscriptions", ["user_id"], unique=False
    )
    op.create_index(
        "idx_push_subscriptions_session_id",
        "push_subscriptions",
        ["session_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_table("push_subscriptions")
    op.drop_table("user_groups")
    op.drop_constraint(
        op.f("fk_users_active_group_id_groups"), "users", type_="foreignkey"
    )
    op.drop_table("groups")
    op.drop_table("users")
    interval_mode.drop(op.get_bind(), checkfirst=True)
