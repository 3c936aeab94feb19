"""
Staff and admin endpoints: booking administration and account bans.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from travel_booking.api.dependencies import require_admin, require_staff
from travel_booking.db.session import get_db
from travel_booking.models.user import User
from travel_booking.schemas.booking import BookingResponse, StatusUpdate, StatusUpdateResponse
from travel_booking.schemas.user import BanUpdate, UserResponse
from travel_booking.services.auth_service import set_banned
from travel_booking.services.booking_service import list_bookings, update_booking_status
from travel_booking.services.cache_service import invalidate_package_cache
from travel_booking.services.email_service import get_email_sender
from travel_booking.services.interfaces import EmailSender

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/bookings")
async def list_all_bookings(
    status: Optional[str] = Query(None, pattern=r"^(Pending|Confirmed|Completed|Cancelled)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    bookings, total = await list_bookings(db, status, (page - 1) * page_size, page_size)
    return {
        "bookings": [BookingResponse.model_validate(b) for b in bookings],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.patch("/bookings/{booking_id}/status", response_model=StatusUpdateResponse)
async def change_booking_status(
    booking_id: int,
    update: StatusUpdate,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
):
    """
    Move a booking through Pending -> Confirmed -> Completed, or cancel it.
    Email problems are reported in `warnings`; the status change stands.
    """
    booking, warnings = await update_booking_status(db, booking_id, update.status, email_sender)
    await invalidate_package_cache()
    return StatusUpdateResponse(booking=BookingResponse.model_validate(booking), warnings=warnings)


@router.patch("/users/{user_id}/ban", response_model=UserResponse)
async def ban_user(
    user_id: int,
    ban: BanUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await set_banned(db, user_id, ban.banned)
