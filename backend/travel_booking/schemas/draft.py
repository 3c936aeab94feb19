"""
Booking draft: the in-progress state of the multi-step booking flow.

The draft is what the old session blob used to be, made explicit: it knows
which step it has reached, and only the transition function in
services.booking_flow moves it forward.
"""

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from travel_booking.schemas.booking import Money


class BookingStep(str, enum.Enum):
    CUSTOMER_INFO_COLLECTED = "CustomerInfoCollected"
    PAYMENT_DETAILS_COLLECTED = "PaymentDetailsCollected"
    CONFIRMATION_READY = "ConfirmationReady"
    COMMITTED = "Committed"


STEP_ORDER = [
    BookingStep.CUSTOMER_INFO_COLLECTED,
    BookingStep.PAYMENT_DETAILS_COLLECTED,
    BookingStep.CONFIRMATION_READY,
    BookingStep.COMMITTED,
]


class CustomerInfo(BaseModel):
    package_id: int
    traveler_count: int = Field(..., ge=1)
    senior_count: int = Field(0, ge=0)
    junior_count: int = Field(0, ge=0)
    travel_date: date
    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., pattern=r"^\d{9,11}$")
    special_requests: Optional[str] = Field(None, max_length=1000)


class PaymentDetails(BaseModel):
    payment_method: str = Field(..., min_length=1, max_length=50)


class BookingDraft(BaseModel):
    id: str
    user_id: int
    step: BookingStep

    package_id: int
    package_name: str
    traveler_count: int
    senior_count: int = 0
    junior_count: int = 0
    travel_date: date

    full_name: str
    email: str
    phone: str
    special_requests: Optional[str] = None

    unit_price: Decimal
    base: Decimal
    discount: Decimal
    final: Decimal
    applied_discounts: list[str] = []

    payment_method: Optional[str] = None
    checkout_session_id: Optional[str] = None
    checkout_url: Optional[str] = None

    created_at: datetime
    updated_at: datetime


class DraftResponse(BaseModel):
    id: str
    step: BookingStep
    package_id: int
    package_name: str
    traveler_count: int
    senior_count: int
    junior_count: int
    travel_date: date
    full_name: str
    email: str
    phone: str
    special_requests: Optional[str]
    unit_price: Money
    base: Money
    discount: Money
    final: Money
    applied_discounts: list[str]
    payment_method: Optional[str]
    checkout_url: Optional[str]

    model_config = {"from_attributes": True}
