"""
User model. Password storage is a tagged variant (see core.security).
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship

from travel_booking.db.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    USER = "User"
    STAFF = "Staff"
    ADMIN = "Admin"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), unique=True, nullable=True)
    address = Column(String(500), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    password_hash = Column(String(255), nullable=False)
    password_scheme = Column(String(20), nullable=False, default="hashed")
    is_banned = Column(Boolean, default=False, nullable=False)

    bookings = relationship("Booking", back_populates="user", lazy="raise")

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.STAFF.value, UserRole.ADMIN.value)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
