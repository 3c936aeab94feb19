"""
Customer review of a completed booking. One per booking.
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint, CheckConstraint

from travel_booking.db.base import Base, TimestampMixin


class Emotion(str, enum.Enum):
    SAD = "Sad"
    NEUTRAL = "Neutral"
    HAPPY = "Happy"
    EXCITED = "Excited"
    LOVED = "Loved"


class Feedback(Base, TimestampMixin):
    __tablename__ = "feedbacks"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(String(2000), nullable=False)
    emotion = Column(String(20), nullable=False)

    __table_args__ = (
        UniqueConstraint("booking_id", name="uq_feedback_booking"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="check_feedback_rating_range"),
    )

    def __repr__(self) -> str:
        return f"<Feedback(id={self.id}, booking={self.booking_id}, rating={self.rating})>"
