from travel_booking.models.user import User, UserRole
from travel_booking.models.package import Package
from travel_booking.models.booking import Booking, BookingStatus
from travel_booking.models.payment import Payment, PaymentStatus
from travel_booking.models.feedback import Feedback, Emotion

__all__ = [
    "User", "UserRole",
    "Package",
    "Booking", "BookingStatus",
    "Payment", "PaymentStatus",
    "Feedback", "Emotion",
]
