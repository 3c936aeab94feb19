"""Initial schema: users, packages, bookings, payments, feedbacks.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'User'")),
        sa.Column("password_hash", sa.String(255), nullable=False),
        # 'plain' marks rows imported from the legacy system; rehashed on next login
        sa.Column("password_scheme", sa.String(20), nullable=False, server_default=sa.text("'hashed'")),
        sa.Column("is_banned", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.UniqueConstraint("phone", name="uq_users_phone"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "packages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("description", sa.String(2000), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("available_slots", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        # Last line of defence against overbooking
        sa.CheckConstraint("available_slots >= 0", name="check_available_slots_non_negative"),
        sa.CheckConstraint("price >= 0", name="check_package_price_non_negative"),
        sa.CheckConstraint("end_date >= start_date", name="check_package_dates_ordered"),
    )
    op.create_index("ix_packages_id", "packages", ["id"])
    op.create_index("ix_packages_destination", "packages", ["destination"])
    # Listings are ordered by start date and filtered to trips that have not ended
    op.create_index("ix_packages_start_date", "packages", ["start_date"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("package_id", sa.Integer(), sa.ForeignKey("packages.id"), nullable=False),
        sa.Column("booked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("travel_date", sa.Date(), nullable=False),
        sa.Column("traveler_count", sa.Integer(), nullable=False),
        sa.Column("senior_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("junior_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("contact_name", sa.String(255), nullable=False),
        sa.Column("contact_email", sa.String(255), nullable=False),
        sa.Column("contact_phone", sa.String(20), nullable=False),
        sa.Column("special_requests", sa.String(1000), nullable=True),
        sa.Column("total_before_discount", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("final_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'Confirmed'")),
        *_timestamps(),
        sa.CheckConstraint("traveler_count > 0", name="check_booking_traveler_count_positive"),
        sa.CheckConstraint("final_amount >= 0", name="check_booking_final_amount_non_negative"),
        sa.CheckConstraint(
            "status IN ('Pending', 'Confirmed', 'Completed', 'Cancelled')",
            name="check_booking_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_package_id", "bookings", ["package_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("method", sa.String(50), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'Completed'")),
        sa.Column("transaction_id", sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])

    op.create_table(
        "feedbacks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.String(2000), nullable=False),
        sa.Column("emotion", sa.String(20), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("booking_id", name="uq_feedback_booking"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="check_feedback_rating_range"),
    )
    op.create_index("ix_feedbacks_id", "feedbacks", ["id"])
    op.create_index("ix_feedbacks_user_id", "feedbacks", ["user_id"])


def downgrade() -> None:
    op.drop_table("feedbacks")
    op.drop_table("payments")
    op.drop_table("bookings")
    op.drop_table("packages")
    op.drop_table("users")
