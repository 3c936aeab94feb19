"""Bookings remember the draft they were committed from, once per draft.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("bookings") as batch_op:
        batch_op.add_column(sa.Column("draft_id", sa.String(64), nullable=True))
        batch_op.create_unique_constraint("uq_booking_draft_id", ["draft_id"])


def downgrade() -> None:
    with op.batch_alter_table("bookings") as batch_op:
        batch_op.drop_constraint("uq_booking_draft_id", type_="unique")
        batch_op.drop_column("draft_id")
