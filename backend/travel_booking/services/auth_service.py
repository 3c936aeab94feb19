"""
Authentication service handling registration and credential verification.
"""

import enum
import math
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from travel_booking.models.user import User, UserRole
from travel_booking.schemas.user import PasswordChange, PasswordReset, ProfileUpdate, UserCreate
from travel_booking.core.config import get_settings
from travel_booking.core.security import (
    PasswordScheme, create_password_reset_token, hash_password, read_password_reset_token,
    reset_token_matches, verify_password,
)
from travel_booking.core.logging import get_logger
from travel_booking.core.metrics import record_login_attempt
from travel_booking.services.email_service import send_password_reset_link
from travel_booking.services.interfaces.email_sender import EmailSender
from travel_booking.services.login_guard import LoginGuard, format_wait

logger = get_logger(__name__)
settings = get_settings()

PHONE_PREFIX = "+60"


class LoginOutcome(str, enum.Enum):
    SUCCESS = "success"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_BANNED = "account_banned"
    LOCKED = "locked"


@dataclass
class LoginResult:
    outcome: LoginOutcome
    message: str
    reason: Optional[str] = None  # unknown_account, wrong_password
    remaining_attempts: Optional[int] = None
    retry_after_seconds: Optional[int] = None
    claims: dict = field(default_factory=dict)
    user: Optional[User] = None

    @property
    def ok(self) -> bool:
        return self.outcome == LoginOutcome.SUCCESS


def format_phone(phone: str) -> str:
    return phone if phone.startswith(PHONE_PREFIX) else PHONE_PREFIX + phone


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_user(db: AsyncSession, user_id: int) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found",
        )
    return user


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new customer with a hashed password.
    Raises 409 if email or phone number already exists.
    """
    if await get_user_by_email(db, user_data.email):
        logger.warning("registration_failed", reason="email_exists", email=user_data.email)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email is already registered",
        )

    phone = format_phone(user_data.phone)
    result = await db.execute(select(User).where(User.phone == phone))
    if result.scalar_one_or_none():
        logger.warning("registration_failed", reason="phone_exists")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Phone number is already registered",
        )

    user = User(
        full_name=user_data.full_name,
        email=user_data.email,
        phone=phone,
        address=user_data.address,
        role=UserRole.USER.value,
        password_hash=hash_password(user_data.password),
        password_scheme=PasswordScheme.HASHED.value,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)

    logger.info("user_registered", user_id=user.id, email=user.email)
    return user


def build_claims(user: User) -> dict:
    return {
        "sub": str(user.id),
        "name": user.full_name,
        "email": user.email,
        "role": user.role or UserRole.USER.value,
    }


async def verify_login(db: AsyncSession, guard: LoginGuard, email: str, password: str) -> LoginResult:
    """
    Check credentials behind the login guard.

    Order matters: an active lockout rejects before anything else, then
    unknown and banned accounts are reported without touching the fail
    counter, and only a wrong password for a real account is counted.
    """
    locked_for = await guard.lockout_remaining(email)
    if locked_for > 0:
        record_login_attempt(LoginOutcome.LOCKED.value)
        logger.info("login_rejected_locked", email=email, seconds_left=round(locked_for, 1))
        return LoginResult(
            outcome=LoginOutcome.LOCKED,
            message=f"Too many failed attempts. Please try again in {format_wait(locked_for)}.",
            retry_after_seconds=max(math.ceil(locked_for), 1),
        )

    user = await get_user_by_email(db, email)
    if not user:
        record_login_attempt(LoginOutcome.INVALID_CREDENTIALS.value)
        logger.warning("login_failed", reason="unknown_account", email=email)
        return LoginResult(
            outcome=LoginOutcome.INVALID_CREDENTIALS,
            reason="unknown_account",
            message="No account is registered with this email.",
        )

    if user.is_banned:
        record_login_attempt(LoginOutcome.ACCOUNT_BANNED.value)
        logger.warning("login_failed", reason="account_banned", user_id=user.id)
        return LoginResult(
            outcome=LoginOutcome.ACCOUNT_BANNED,
            message="This account has been banned. Please contact support.",
        )

    if not verify_password(password, user.password_hash, user.password_scheme):
        verdict = await guard.register_failure(email)
        logger.warning("login_failed", reason="wrong_password", user_id=user.id)

        if verdict is not None and verdict.locked:
            record_login_attempt(LoginOutcome.LOCKED.value)
            return LoginResult(
                outcome=LoginOutcome.LOCKED,
                reason="wrong_password",
                message=(
                    "Too many failed attempts. Your account is locked for "
                    f"{format_wait(verdict.lockout_seconds)}."
                ),
                remaining_attempts=0,
                retry_after_seconds=verdict.lockout_seconds,
            )

        record_login_attempt(LoginOutcome.INVALID_CREDENTIALS.value)
        if verdict is None:
            message = "Incorrect password."
            remaining = None
        else:
            remaining = verdict.remaining_attempts
            message = (
                f"Incorrect password. {remaining} attempt{'s' if remaining != 1 else ''} "
                "remaining before your account is locked."
            )
        return LoginResult(
            outcome=LoginOutcome.INVALID_CREDENTIALS,
            reason="wrong_password",
            message=message,
            remaining_attempts=remaining,
        )

    await guard.register_success(email)

    if user.password_scheme == PasswordScheme.PLAIN.value and settings.REHASH_LEGACY_PASSWORDS:
        user.password_hash = hash_password(password)
        user.password_scheme = PasswordScheme.HASHED.value
        await db.flush()
        logger.info("legacy_password_rehashed", user_id=user.id)

    record_login_attempt(LoginOutcome.SUCCESS.value)
    logger.info("user_logged_in", user_id=user.id)
    return LoginResult(
        outcome=LoginOutcome.SUCCESS,
        message="Login successful",
        claims=build_claims(user),
        user=user,
    )


async def set_banned(db: AsyncSession, user_id: int, banned: bool) -> User:
    user = await get_user(db, user_id)
    user.is_banned = banned
    await db.flush()
    await db.refresh(user)
    logger.info("user_ban_updated", user_id=user.id, banned=banned)
    return user


async def is_email_available(db: AsyncSession, email: str) -> bool:
    return await get_user_by_email(db, email) is None


async def is_phone_available(db: AsyncSession, phone: str, exclude_user_id: Optional[int] = None) -> bool:
    query = select(User.id).where(User.phone == format_phone(phone))
    if exclude_user_id is not None:
        query = query.where(User.id != exclude_user_id)
    result = await db.execute(query)
    return result.first() is None


async def update_profile(db: AsyncSession, user: User, data: ProfileUpdate) -> User:
    """Name, phone and address. Email is the login key and cannot change here."""
    # Only address may be cleared
    changes = {
        name: value for name, value in data.model_dump(exclude_unset=True).items()
        if value is not None or name == "address"
    }
    if "phone" in changes:
        if not await is_phone_available(db, changes["phone"], exclude_user_id=user.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Phone number is already registered",
            )
        changes["phone"] = format_phone(changes["phone"])

    for name, value in changes.items():
        setattr(user, name, value)
    await db.flush()
    await db.refresh(user)

    logger.info("profile_updated", user_id=user.id, fields=sorted(changes))
    return user


def _set_password(user: User, password: str) -> None:
    user.password_hash = hash_password(password)
    user.password_scheme = PasswordScheme.HASHED.value


async def change_password(db: AsyncSession, user: User, data: PasswordChange) -> None:
    if not verify_password(data.current_password, user.password_hash, user.password_scheme):
        logger.warning("password_change_failed", user_id=user.id, reason="wrong_current_password")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect.",
        )

    _set_password(user, data.new_password)
    await db.flush()
    logger.info("password_changed", user_id=user.id)


async def request_password_reset(db: AsyncSession, email: str, email_sender: EmailSender) -> None:
    """
    Email a reset link when the account exists. Callers answer the same way
    either way, so the response never reveals whether the email is registered.
    """
    user = await get_user_by_email(db, email)
    if user is None or user.is_banned:
        logger.info("password_reset_skipped", email=email, reason="no_active_account")
        return

    token = create_password_reset_token(user.id, user.password_hash)
    link = f"{settings.PUBLIC_BASE_URL}/reset-password?token={token}"
    warning = await send_password_reset_link(email_sender, user.email, user.full_name, link)
    logger.info("password_reset_requested", user_id=user.id, emailed=warning is None)


async def reset_password(db: AsyncSession, data: PasswordReset) -> User:
    invalid = HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Reset link is invalid or has expired.",
    )
    claims = read_password_reset_token(data.token)
    if claims is None:
        raise invalid

    user_id, fingerprint = claims
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not reset_token_matches(fingerprint, user.password_hash):
        logger.warning("password_reset_rejected", user_id=user_id)
        raise invalid

    _set_password(user, data.new_password)
    await db.flush()
    logger.info("password_reset_completed", user_id=user.id)
    return user
