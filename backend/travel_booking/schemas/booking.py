"""
Pydantic schemas for quotes, bookings, payments and feedback.
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated, Optional

from pydantic import BaseModel, Field, PlainSerializer

from travel_booking.models.feedback import Emotion


def _cents(value: Decimal) -> str:
    return str(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# Money is carried unrounded and only rounded to cents on the way out
Money = Annotated[Decimal, PlainSerializer(_cents, return_type=str, when_used="json")]


class QuoteCreate(BaseModel):
    package_id: int
    traveler_count: int = Field(..., ge=1)
    travel_date: date
    senior_count: int = Field(0, ge=0)
    junior_count: int = Field(0, ge=0)


class QuoteResponse(BaseModel):
    package_id: int
    unit_price: Money
    traveler_count: int
    senior_count: int
    junior_count: int
    travel_date: date
    base: Money
    discount: Money
    final: Money
    applied_discounts: list[str]

    model_config = {"from_attributes": True}


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    method: str
    amount: Money
    paid_at: datetime
    status: str
    transaction_id: Optional[str]

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: int
    user_id: int
    package_id: int
    booked_at: datetime
    travel_date: date
    traveler_count: int
    senior_count: int
    junior_count: int
    contact_name: str
    contact_email: str
    contact_phone: str
    special_requests: Optional[str]
    total_before_discount: Money
    discount_amount: Money
    final_amount: Money
    status: str

    model_config = {"from_attributes": True}


class BookingDetailResponse(BookingResponse):
    payments: list[PaymentResponse] = []


class CommitResponse(BaseModel):
    booking_id: int
    payment_id: int
    booking: BookingResponse


class StatusUpdate(BaseModel):
    status: str = Field(..., pattern=r"^(Pending|Confirmed|Completed|Cancelled)$")


class StatusUpdateResponse(BaseModel):
    booking: BookingResponse
    warnings: list[str] = []


class FeedbackCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1, max_length=2000)
    emotion: Emotion


class FeedbackResponse(BaseModel):
    id: int
    booking_id: int
    user_id: int
    rating: int
    comment: str
    emotion: str
    created_at: datetime

    model_config = {"from_attributes": True}
