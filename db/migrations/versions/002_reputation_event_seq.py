"""Add per-number seq to caller_id_reputation_events for stable history order.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("caller_id_reputation_events") as batch:
        batch.add_column(sa.Column("seq", sa.Integer, nullable=False, server_default="0"))
    # Number existing rows in created_at order within each number
    op.execute(
        """
        UPDATE caller_id_reputation_events AS e
        SET seq = (
            SELECT COUNT(*) FROM caller_id_reputation_events AS p
            WHERE p.caller_id_number_id = e.caller_id_number_id
              AND (p.created_at < e.created_at
                   OR (p.created_at = e.created_at AND p.id <= e.id))
        )
        """
    )
    with op.batch_alter_table("caller_id_reputation_events") as batch:
        batch.alter_column("seq", server_default=None)
        batch.create_unique_constraint(
            "uq_caller_id_reputation_event_seq", ["caller_id_number_id", "seq"]
        )


def downgrade() -> None:
    with op.batch_alter_table("caller_id_reputation_events") as batch:
        batch.drop_constraint("uq_caller_id_reputation_event_seq", type_="unique")
        batch.drop_column("seq")
