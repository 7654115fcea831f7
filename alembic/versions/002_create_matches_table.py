"""create matches table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    matchstate = sa.Enum(
        "proposed", "approved", "rejected", "completed",
        name="matchstate",
    )

    op.create_table(
        "matches",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("withdrawal_id", sa.String(32), nullable=False),
        sa.Column("deposit_id", sa.String(32), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("state", matchstate, nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_matches_withdrawal_id", "matches", ["withdrawal_id"])
    op.create_index("ix_matches_deposit_id", "matches", ["deposit_id"])
    op.create_index("ix_matches_state", "matches", ["state"])


def downgrade() -> None:
    op.drop_index("ix_matches_state", table_name="matches")
    op.drop_index("ix_matches_deposit_id", table_name="matches")
    op.drop_index("ix_matches_withdrawal_id", table_name="matches")
    op.drop_table("matches")
    sa.Enum(name="matchstate").drop(op.get_bind(), checkfirst=True)
