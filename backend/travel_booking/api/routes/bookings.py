"""
Booking endpoints: quotes, the multi-step booking flow and booking history.

Slot reservation happens only at commit, with optimistic locking. If the
commit keeps losing version races with simultaneous bookings it retries up to
3 times before returning a 409.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from travel_booking.api.dependencies import get_booking_flow, get_current_user
from travel_booking.db.session import get_db
from travel_booking.models.user import User
from travel_booking.schemas.booking import (
    BookingDetailResponse, BookingResponse, CommitResponse, FeedbackCreate, FeedbackResponse,
    QuoteCreate, QuoteResponse,
)
from travel_booking.schemas.draft import CustomerInfo, DraftResponse, PaymentDetails
from travel_booking.services.booking_flow import BookingFlow
from travel_booking.services.booking_service import create_feedback, get_user_booking, get_user_bookings
from travel_booking.services.cache_service import invalidate_package_cache
from travel_booking.services.email_service import get_email_sender
from travel_booking.services.interfaces import EmailSender
from travel_booking.services.pricing import quote_price

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/quote", response_model=QuoteResponse)
async def quote(quote_data: QuoteCreate, db: AsyncSession = Depends(get_db)):
    """Price a prospective booking. Public, and safe to call on every form change."""
    return await quote_price(
        db,
        quote_data.package_id,
        quote_data.traveler_count,
        quote_data.travel_date,
        senior_count=quote_data.senior_count,
        junior_count=quote_data.junior_count,
    )


@router.post("/drafts", response_model=DraftResponse, status_code=status.HTTP_201_CREATED)
async def start_booking(
    info: CustomerInfo,
    user: User = Depends(get_current_user),
    flow: BookingFlow = Depends(get_booking_flow),
):
    """Step 1: customer and trip details."""
    return await flow.start(user.id, info)


@router.get("/drafts/{draft_id}", response_model=DraftResponse)
async def get_draft(
    draft_id: str,
    user: User = Depends(get_current_user),
    flow: BookingFlow = Depends(get_booking_flow),
):
    return await flow.get(user.id, draft_id)


@router.put("/drafts/{draft_id}/payment", response_model=DraftResponse)
async def submit_payment_details(
    draft_id: str,
    details: PaymentDetails,
    user: User = Depends(get_current_user),
    flow: BookingFlow = Depends(get_booking_flow),
):
    """Step 2: payment method."""
    return await flow.submit_payment(user.id, draft_id, details)


@router.post("/drafts/{draft_id}/confirm", response_model=DraftResponse)
async def confirm_booking(
    draft_id: str,
    user: User = Depends(get_current_user),
    flow: BookingFlow = Depends(get_booking_flow),
):
    """Step 3: open a checkout session. The response carries the gateway redirect URL."""
    return await flow.confirm(user.id, draft_id)


@router.post("/drafts/{draft_id}/commit", response_model=CommitResponse, status_code=status.HTTP_201_CREATED)
async def commit_draft(
    draft_id: str,
    user: User = Depends(get_current_user),
    flow: BookingFlow = Depends(get_booking_flow),
):
    """Step 4: persist booking and payment and take the slots, all or nothing."""
    user_id = user.id
    booking, payment = await flow.commit(user_id, draft_id)
    await invalidate_package_cache()
    return CommitResponse(
        booking_id=booking.id,
        payment_id=payment.id,
        booking=BookingResponse.model_validate(booking),
    )


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for the authenticated user."""
    return await get_user_bookings(db, user.id)


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(
    booking_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_user_booking(db, user.id, booking_id)


@router.post("/{booking_id}/feedback", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
async def leave_feedback(
    booking_id: int,
    feedback_data: FeedbackCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
):
    """Review a completed trip. One review per booking."""
    return await create_feedback(db, user.id, booking_id, feedback_data, email_sender)
