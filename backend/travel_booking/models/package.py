"""
Travel package with slot inventory tracking.

Key design decisions:
- `available_slots` is the bookable capacity left; only a committed booking
  decrements it and only a cancellation restores it
- `version` column enables optimistic locking for concurrent booking commits
- CHECK constraint is the last line of defence against overbooking
"""

from sqlalchemy import Column, Integer, String, Date, Numeric, Index, CheckConstraint
from sqlalchemy.orm import relationship

from travel_booking.db.base import Base, TimestampMixin


class Package(Base, TimestampMixin):
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    description = Column(String(2000), nullable=True)
    category = Column(String(100), nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    available_slots = Column(Integer, nullable=False, default=0)
    image_url = Column(String(500), nullable=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    bookings = relationship("Booking", back_populates="package", lazy="raise")

    __table_args__ = (
        CheckConstraint("available_slots >= 0", name="check_available_slots_non_negative"),
        CheckConstraint("price >= 0", name="check_package_price_non_negative"),
        CheckConstraint("end_date >= start_date", name="check_package_dates_ordered"),
        Index("ix_packages_destination", "destination"),
        Index("ix_packages_start_date", "start_date"),
    )

    def __repr__(self) -> str:
        return f"<Package(id={self.id}, name={self.name}, slots={self.available_slots})>"
