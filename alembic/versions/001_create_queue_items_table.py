"""create queue_items table

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    itemkind = sa.Enum("withdrawal", "deposit", name="itemkind")
    itemstate = sa.Enum(
        "pending", "matched", "processing", "completed", "rejected", "cancelled",
        name="itemstate",
    )
    paymenttype = sa.Enum(
        "bank_transfer", "crypto", "paypal", "zelle", "venmo", "cashapp",
        "apple_pay", "google_pay",
        name="paymenttype",
    )

    op.create_table(
        "queue_items",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("kind", itemkind, nullable=False),
        sa.Column("customer_id", sa.String(100), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("payment_type", paymenttype, nullable=False),
        sa.Column("priority", sa.Integer(), server_default="1", nullable=False),
        sa.Column("state", itemstate, nullable=False),
        sa.Column("channel_ref", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("match_id", sa.String(32), nullable=True),
        sa.Column("enqueued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_queue_items_amount_positive"),
    )
    op.create_index("ix_queue_items_kind", "queue_items", ["kind"])
    op.create_index("ix_queue_items_state", "queue_items", ["state"])
    op.create_index("ix_queue_items_customer_id", "queue_items", ["customer_id"])


def downgrade() -> None:
    op.drop_index("ix_queue_items_customer_id", table_name="queue_items")
    op.drop_index("ix_queue_items_state", table_name="queue_items")
    op.drop_index("ix_queue_items_kind", table_name="queue_items")
    op.drop_table("queue_items")
    sa.Enum(name="paymenttype").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="itemstate").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="itemkind").drop(op.get_bind(), checkfirst=True)
