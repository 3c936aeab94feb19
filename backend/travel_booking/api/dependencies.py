"""
Shared route dependencies: the current user, role guards and service wiring.
"""

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from travel_booking.core.security import get_current_user_id
from travel_booking.db.session import get_db
from travel_booking.models.user import User, UserRole
from travel_booking.services.auth_service import get_user
from travel_booking.services.booking_flow import BookingFlow
from travel_booking.services.interfaces import AttemptStore, DraftStore, PaymentGateway
from travel_booking.services.login_guard import LoginGuard
from travel_booking.services.payment_gateway import get_payment_gateway
from travel_booking.services.strategy_factory import get_attempt_store, get_draft_store


async def get_current_user(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> User:
    """The token's user. A banned account loses access even with a live token."""
    try:
        user = await get_user(db, user_id)
    except HTTPException:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User no longer exists",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.is_banned:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is banned")
    return user


async def require_staff(user: User = Depends(get_current_user)) -> User:
    if not user.is_staff:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff access required")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.ADMIN.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


async def get_login_guard(store: AttemptStore = Depends(get_attempt_store)) -> LoginGuard:
    return LoginGuard(store)


async def get_booking_flow(
    db: AsyncSession = Depends(get_db),
    drafts: DraftStore = Depends(get_draft_store),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> BookingFlow:
    return BookingFlow(db, drafts, gateway)
