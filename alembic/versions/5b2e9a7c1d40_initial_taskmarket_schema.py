"""initial taskmarket schema: tasks lifecycle, chat, notifications, gamification

Revision ID: 5b2e9a7c1d40
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "5b2e9a7c1d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


UUID = postgresql.UUID(as_uuid=True)
TS = sa.DateTime(timezone=True)
NOW = sa.text("now()")


def upgrade() -> None:
    # --- tasks ---
    op.create_table(
        "tasks",
        sa.Column("id", UUID, nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=32), nullable=False, server_default="food"),
        sa.Column("urgency", sa.String(length=16), nullable=False, server_default="medium"),
        sa.Column("store", sa.Text(), nullable=False, server_default=""),
        sa.Column("dropoff_address", sa.Text(), nullable=False, server_default=""),
        sa.Column("dropoff_instructions", sa.Text(), nullable=False, server_default=""),
        sa.Column("reward_cents", sa.Integer(), nullable=False),
        sa.Column("estimated_minutes", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="open"),
        sa.Column("task_current_status", sa.String(length=32), nullable=True),
        sa.Column("created_by", UUID, nullable=False),
        sa.Column("accepted_by", UUID, nullable=True),
        sa.Column("accepted_at", TS, nullable=True),
        sa.Column("user_accept_code", sa.String(length=16), nullable=True),
        sa.Column("last_status_update", TS, nullable=True),
        sa.Column("moderation_status", sa.String(length=32), nullable=False, server_default="approved"),
        sa.Column("moderation_reason", sa.Text(), nullable=True),
        sa.Column("moderated_by", UUID, nullable=True),
        sa.Column("moderated_at", TS, nullable=True),
        sa.Column("created_at", TS, nullable=False, server_default=NOW),
        sa.Column("updated_at", TS, nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id", name="pk_tasks"),
        sa.CheckConstraint(
            "status IN ('open', 'accepted', 'in_progress', 'completed', 'cancelled')",
            name="ck_tasks_status_domain",
        ),
        sa.CheckConstraint(
            "task_current_status IS NULL OR task_current_status IN "
            "('accepted', 'picked_up', 'on_the_way', 'delivered', 'completed')",
            name="ck_tasks_phase_domain",
        ),
        sa.CheckConstraint("category IN ('food', 'grocery', 'coffee')", name="ck_tasks_category_domain"),
        sa.CheckConstraint("urgency IN ('low', 'medium', 'high')", name="ck_tasks_urgency_domain"),
        sa.CheckConstraint(
            "moderation_status IN ('approved', 'needs_review', 'blocked')",
            name="ck_tasks_moderation_domain",
        ),
        # accepted_by is set iff the task has been won and not cancelled
        sa.CheckConstraint(
            "(status IN ('accepted', 'in_progress', 'completed') "
            "AND accepted_by IS NOT NULL AND accepted_at IS NOT NULL) "
            "OR (status NOT IN ('accepted', 'in_progress', 'completed') AND accepted_by IS NULL)",
            name="ck_tasks_accepted_by_matches_status",
        ),
        sa.CheckConstraint("accepted_by IS NULL OR accepted_by <> created_by", name="ck_tasks_not_self_accepted"),
        sa.CheckConstraint("reward_cents > 0", name="ck_tasks_reward_positive"),
        sa.CheckConstraint("estimated_minutes > 0", name="ck_tasks_estimated_minutes_positive"),
    )
    op.create_index("ix_tasks_status_created_at", "tasks", ["status", "created_at"])
    op.create_index("ix_tasks_created_by", "tasks", ["created_by"])
    op.create_index("ix_tasks_accepted_by", "tasks", ["accepted_by"])

    # --- task_status_history (append-only) ---
    op.create_table(
        "task_status_history",
        sa.Column("id", UUID, nullable=False),
        sa.Column("task_id", UUID, nullable=False),
        sa.Column("from_status", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("changed_by", UUID, nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("created_at", TS, nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id", name="pk_task_status_history"),
        sa.ForeignKeyConstraint(
            ["task_id"], ["tasks.id"], ondelete="CASCADE", name="fk_task_status_history_task_id_tasks"
        ),
    )
    op.create_index("ix_task_status_history_task_time", "task_status_history", ["task_id", "created_at"])

    # --- chat ---
    op.create_table(
        "chat_rooms",
        sa.Column("id", UUID, nullable=False),
        sa.Column("task_id", UUID, nullable=False),
        sa.Column("last_message", sa.Text(), nullable=True),
        sa.Column("last_message_at", TS, nullable=True),
        sa.Column("created_at", TS, nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id", name="pk_chat_rooms"),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE", name="fk_chat_rooms_task_id_tasks"),
        # one room per task
        sa.UniqueConstraint("task_id", name="uq_chat_rooms_task_id"),
    )
    op.create_table(
        "chat_members",
        sa.Column("room_id", UUID, nullable=False),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("unread_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_read_at", TS, nullable=True),
        sa.Column("joined_at", TS, nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("room_id", "user_id", name="pk_chat_members"),
        sa.ForeignKeyConstraint(
            ["room_id"], ["chat_rooms.id"], ondelete="CASCADE", name="fk_chat_members_room_id_chat_rooms"
        ),
    )
    op.create_table(
        "chat_messages",
        sa.Column("id", UUID, nullable=False),
        sa.Column("room_id", UUID, nullable=False),
        sa.Column("sender_id", UUID, nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("created_at", TS, nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id", name="pk_chat_messages"),
        sa.ForeignKeyConstraint(
            ["room_id"], ["chat_rooms.id"], ondelete="CASCADE", name="fk_chat_messages_room_id_chat_rooms"
        ),
    )
    op.create_index("ix_chat_messages_room_id", "chat_messages", ["room_id"])

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", UUID, nullable=False),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("task_id", UUID, nullable=True),
        sa.Column("meta", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", TS, nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id", name="pk_notifications"),
        sa.ForeignKeyConstraint(
            ["task_id"], ["tasks.id"], ondelete="CASCADE", name="fk_notifications_task_id_tasks"
        ),
        sa.CheckConstraint(
            "type IN ('TASK_POSTED', 'TASK_ACCEPTED', 'TASK_UPDATED')",
            name="ck_notifications_type_domain",
        ),
    )
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])

    op.create_table(
        "notification_preferences",
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("new_tasks", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("task_accepted", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("task_updates", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", TS, nullable=False, server_default=NOW),
        sa.Column("updated_at", TS, nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("user_id", name="pk_notification_preferences"),
    )

    op.create_table(
        "push_subscriptions",
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("device_id", sa.String(length=200), nullable=False),
        sa.Column("expo_token", sa.Text(), nullable=False),
        sa.Column("platform", sa.String(length=16), nullable=False),
        sa.Column("updated_at", TS, nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("user_id", "device_id", name="pk_push_subscriptions"),
        sa.CheckConstraint("platform IN ('ios', 'android', 'web')", name="ck_push_subscriptions_platform_domain"),
    )

    # --- gamification ---
    op.create_table(
        "profiles",
        sa.Column("id", UUID, nullable=False),
        sa.Column("display_name", sa.Text(), nullable=False, server_default=""),
        sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("credits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", TS, nullable=False, server_default=NOW),
        sa.Column("updated_at", TS, nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id", name="pk_profiles"),
        sa.CheckConstraint("xp >= 0", name="ck_profiles_xp_non_negative"),
        sa.CheckConstraint("credits >= 0", name="ck_profiles_credits_non_negative"),
        sa.CheckConstraint("level >= 1", name="ck_profiles_level_positive"),
    )
    op.create_table(
        "xp_transactions",
        sa.Column("id", UUID, nullable=False),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("task_id", UUID, nullable=True),
        sa.Column("created_at", TS, nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id", name="pk_xp_transactions"),
        sa.ForeignKeyConstraint(
            ["task_id"], ["tasks.id"], ondelete="SET NULL", name="fk_xp_transactions_task_id_tasks"
        ),
    )
    op.create_index("ix_xp_transactions_user_created", "xp_transactions", ["user_id", "created_at"])

    op.create_table(
        "credit_transactions",
        sa.Column("id", UUID, nullable=False),
        sa.Column("user_id", UUID, nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.String(length=16), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("task_id", UUID, nullable=True),
        sa.Column("created_at", TS, nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id", name="pk_credit_transactions"),
        sa.ForeignKeyConstraint(
            ["task_id"], ["tasks.id"], ondelete="SET NULL", name="fk_credit_transactions_task_id_tasks"
        ),
        sa.CheckConstraint(
            "transaction_type IN ('earned', 'spent', 'purchased')",
            name="ck_credit_transactions_transaction_type_domain",
        ),
    )
    op.create_index("ix_credit_transactions_user_created", "credit_transactions", ["user_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_credit_transactions_user_created", table_name="credit_transactions")
    op.drop_table("credit_transactions")
    op.drop_index("ix_xp_transactions_user_created", table_name="xp_transactions")
    op.drop_table("xp_transactions")
    op.drop_table("profiles")
    op.drop_table("push_subscriptions")
    op.drop_table("notification_preferences")
    op.drop_index("ix_notifications_user_created", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_chat_messages_room_id", table_name="chat_messages")
    op.drop_table("chat_messages")
    op.drop_table("chat_members")
    op.drop_table("chat_rooms")
    op.drop_index("ix_task_status_history_task_time", table_name="task_status_history")
    op.drop_table("task_status_history")
    op.drop_index("ix_tasks_accepted_by", table_name="tasks")
    op.drop_index("ix_tasks_created_by", table_name="tasks")
    op.drop_index("ix_tasks_status_created_at", table_name="tasks")
    op.drop_table("tasks")
