"""
Booking model: a committed reservation of a package for a group of travelers.

Key design decisions:
- Money columns store the quote exactly as priced at commit time, so later
  package price changes never rewrite history
- Status field allows cancellation without deleting records
- Contact details are copied from the booking form, not the user profile
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, ForeignKey, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from travel_booking.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False, index=True)
    booked_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    travel_date = Column(Date, nullable=False)
    traveler_count = Column(Integer, nullable=False)
    senior_count = Column(Integer, nullable=False, default=0)
    junior_count = Column(Integer, nullable=False, default=0)

    contact_name = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=False)
    contact_phone = Column(String(20), nullable=False)
    special_requests = Column(String(1000), nullable=True)

    total_before_discount = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    final_amount = Column(Numeric(12, 2), nullable=False)

    # Set for bookings committed from a draft; one booking per draft
    draft_id = Column(String(64), nullable=True)

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)

    user = relationship("User", back_populates="bookings")
    package = relationship("Package", back_populates="bookings")
    payments = relationship("Payment", back_populates="booking", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("draft_id", name="uq_booking_draft_id"),
        CheckConstraint("traveler_count > 0", name="check_booking_traveler_count_positive"),
        CheckConstraint("final_amount >= 0", name="check_booking_final_amount_non_negative"),
        CheckConstraint(
            "status IN ('Pending', 'Confirmed', 'Completed', 'Cancelled')",
            name="check_booking_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, package={self.package_id}, status={self.status})>"
