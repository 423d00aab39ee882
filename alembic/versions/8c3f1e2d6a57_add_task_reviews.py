"""add task reviews: one 1-5 rating per participant of a completed task

Revision ID: 8c3f1e2d6a57
Revises: 5b2e9a7c1d40
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision: str = "8c3f1e2d6a57"
down_revision: Union[str, Sequence[str], None] = "5b2e9a7c1d40"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


UUID = postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    op.create_table(
        "reviews",
        sa.Column("id", UUID, nullable=False),
        sa.Column("task_id", UUID, nullable=False),
        sa.Column("reviewer_id", UUID, nullable=False),
        sa.Column("reviewee_id", UUID, nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id", name="pk_reviews"),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE", name="fk_reviews_task_id_tasks"),
        sa.UniqueConstraint("task_id", "reviewer_id", name="uq_reviews_task_reviewer"),
        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
        sa.CheckConstraint("reviewer_id <> reviewee_id", name="ck_reviews_not_self_review"),
    )
    op.create_index("ix_reviews_task_id", "reviews", ["task_id"])
    op.create_index("ix_reviews_reviewee_created", "reviews", ["reviewee_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_reviews_reviewee_created", table_name="reviews")
    op.drop_index("ix_reviews_task_id", table_name="reviews")
    op.drop_table("reviews")
