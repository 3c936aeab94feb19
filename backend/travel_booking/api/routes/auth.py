"""
Authentication endpoints: register, login, profile, password change and reset,
and email or phone availability checks.
"""

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from travel_booking.api.dependencies import get_current_user, get_login_guard
from travel_booking.core.security import create_access_token
from travel_booking.db.session import get_db
from travel_booking.models.user import User
from travel_booking.schemas.user import (
    Availability, ForgotPassword, LoginRejected, PasswordChange, PasswordReset, ProfileUpdate,
    Token, UserCreate, UserLogin, UserResponse,
)
from travel_booking.services.auth_service import (
    LoginOutcome, change_password, is_email_available, is_phone_available, register_user,
    request_password_reset, reset_password, update_profile, verify_login,
)
from travel_booking.services.email_service import get_email_sender
from travel_booking.services.interfaces.email_sender import EmailSender
from travel_booking.services.login_guard import LoginGuard

router = APIRouter(prefix="/auth", tags=["Authentication"])

_REJECTION_STATUS = {
    LoginOutcome.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    LoginOutcome.ACCOUNT_BANNED: status.HTTP_403_FORBIDDEN,
    LoginOutcome.LOCKED: status.HTTP_429_TOO_MANY_REQUESTS,
}


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new customer account."""
    user = await register_user(db, user_data)
    return user


@router.post(
    "/login",
    response_model=Token,
    responses={401: {"model": LoginRejected}, 403: {"model": LoginRejected}, 429: {"model": LoginRejected}},
)
async def login(
    login_data: UserLogin,
    db: AsyncSession = Depends(get_db),
    guard: LoginGuard = Depends(get_login_guard),
):
    """
    Authenticate and receive a JWT access token.

    Wrong passwords are counted per email: the third locks the account for
    30 seconds and any further one for 5 minutes. Locked responses carry a
    Retry-After header.
    """
    result = await verify_login(db, guard, login_data.email, login_data.password)
    if result.ok:
        return Token(access_token=create_access_token(result.claims), claims=result.claims)

    body = LoginRejected(
        outcome=result.outcome.value,
        reason=result.reason,
        message=result.message,
        remaining_attempts=result.remaining_attempts,
        retry_after_seconds=result.retry_after_seconds,
    )
    headers = {}
    if result.retry_after_seconds:
        headers["Retry-After"] = str(result.retry_after_seconds)
    return JSONResponse(
        status_code=_REJECTION_STATUS[result.outcome],
        content=body.model_dump(),
        headers=headers,
    )


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=UserResponse)
async def update_me(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Update name, phone or address. 409 when the phone belongs to another account."""
    return await update_profile(db, user, data)


@router.post("/change-password")
async def change_my_password(
    data: PasswordChange,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await change_password(db, user, data)
    return {"message": "Password updated."}


@router.post("/forgot-password", status_code=status.HTTP_202_ACCEPTED)
async def forgot_password(
    data: ForgotPassword,
    db: AsyncSession = Depends(get_db),
    email_sender: EmailSender = Depends(get_email_sender),
):
    """Always 202, whether or not the email is registered."""
    await request_password_reset(db, data.email, email_sender)
    return {"message": "If an account exists, a reset link has been sent."}


@router.post("/reset-password")
async def reset_forgotten_password(data: PasswordReset, db: AsyncSession = Depends(get_db)):
    await reset_password(db, data)
    return {"message": "Password has been reset. Please log in."}


@router.get("/check-email", response_model=Availability)
async def check_email(email: EmailStr, db: AsyncSession = Depends(get_db)):
    if await is_email_available(db, email):
        return Availability(available=True)
    return Availability(available=False, message="Email is already registered")


@router.get("/check-phone", response_model=Availability)
async def check_phone(phone: str = Query(..., pattern=r"^(\+60)?\d{9,11}$"), db: AsyncSession = Depends(get_db)):
    if await is_phone_available(db, phone):
        return Availability(available=True)
    return Availability(available=False, message="Phone number is already registered")
