"""create queue_history table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "003"
down_revision = "002"
branch_labels = None
depends_on = None


def upgrade() -> None:
    historyeventtype = sa.Enum(
        "item_added", "item_state_changed", "item_updated",
        "match_proposed", "match_approved", "match_rejected", "match_completed",
        "notification_failed",
        name="historyeventtype",
    )

    op.create_table(
        "queue_history",
        sa.Column("seq", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("id", sa.String(32), nullable=False, unique=True),
        sa.Column("event_type", historyeventtype, nullable=False),
        sa.Column("item_id", sa.String(32), nullable=True),
        sa.Column("match_id", sa.String(32), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_queue_history_item_id", "queue_history", ["item_id"])
    op.create_index("ix_queue_history_match_id", "queue_history", ["match_id"])


def downgrade() -> None:
    op.drop_index("ix_queue_history_match_id", table_name="queue_history")
    op.drop_index("ix_queue_history_item_id", table_name="queue_history")
    op.drop_table("queue_history")
    sa.Enum(name="historyeventtype").drop(op.get_bind(), checkfirst=True)
