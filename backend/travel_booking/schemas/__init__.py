from travel_booking.schemas.user import (
    UserCreate, UserResponse, UserLogin, Token, LoginRejected,
    ProfileUpdate, PasswordChange, ForgotPassword, PasswordReset, Availability,
)
from travel_booking.schemas.package import (
    PackageCreate, PackageUpdate, PackageResponse, PackageDetailResponse, PackageListResponse,
)
from travel_booking.schemas.booking import (
    QuoteCreate, QuoteResponse, BookingResponse, BookingDetailResponse, CommitResponse,
    FeedbackCreate, FeedbackResponse,
)
from travel_booking.schemas.draft import BookingDraft, BookingStep, CustomerInfo, PaymentDetails, DraftResponse

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token", "LoginRejected",
    "ProfileUpdate", "PasswordChange", "ForgotPassword", "PasswordReset", "Availability",
    "PackageCreate", "PackageUpdate", "PackageResponse", "PackageDetailResponse", "PackageListResponse",
    "QuoteCreate", "QuoteResponse", "BookingResponse", "BookingDetailResponse", "CommitResponse",
    "FeedbackCreate", "FeedbackResponse",
    "BookingDraft", "BookingStep", "CustomerInfo", "PaymentDetails", "DraftResponse",
]
