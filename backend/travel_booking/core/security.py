"""
Password hashing, password verification, JWT access tokens and password
reset tokens.

Stored passwords are a tagged variant: the ``password_scheme`` column says
whether ``password_hash`` holds a passlib hash or a legacy plain value. The
scheme is decided when the password is written, never guessed at verify time.
"""

import enum
import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from travel_booking.core.config import get_settings
from travel_booking.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


class PasswordScheme(str, enum.Enum):
    PLAIN = "plain"  # legacy rows imported from the old system
    HASHED = "hashed"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def _plain_equals(password: str, stored: str) -> bool:
    return hmac.compare_digest(password.encode("utf-8"), stored.encode("utf-8"))


def verify_password(password: str, stored: str, scheme: str = PasswordScheme.HASHED.value) -> bool:
    """
    Check ``password`` against a stored value of the given scheme.

    A hashed value that passlib cannot parse is compared as plain text
    instead of failing closed. That path is logged every time it is taken
    so the affected rows can be found and repaired.
    """
    if scheme == PasswordScheme.PLAIN.value:
        return _plain_equals(password, stored)

    try:
        return pwd_context.verify(password, stored)
    except (ValueError, TypeError) as e:
        logger.warning("password_verify_fallback", reason=str(e))
        return _plain_equals(password, stored)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = dict(data)
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode["exp"] = expire
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


PASSWORD_RESET_PURPOSE = "password_reset"


def _password_fingerprint(password_hash: str) -> str:
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


def create_password_reset_token(user_id: int, password_hash: str) -> str:
    """
    Signed, expiring reset token bound to the current password.

    It carries no ``sub`` so it can never pass as an access token, and the
    password fingerprint makes it single use: once the password changes the
    token no longer matches.
    """
    payload = {
        "uid": user_id,
        "purpose": PASSWORD_RESET_PURPOSE,
        "pwd": _password_fingerprint(password_hash),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def read_password_reset_token(token: str) -> Optional[tuple[int, str]]:
    """(user id, password fingerprint), or None for a bad, expired or foreign token."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        return None
    if payload.get("purpose") != PASSWORD_RESET_PURPOSE:
        return None
    try:
        return int(payload["uid"]), str(payload["pwd"])
    except (KeyError, TypeError, ValueError):
        return None


def reset_token_matches(fingerprint: str, password_hash: str) -> bool:
    return hmac.compare_digest(fingerprint, _password_fingerprint(password_hash))


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> int:
    """Resolve the user id from the bearer token; 401 when absent or invalid."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)
    try:
        return int(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
            headers={"WWW-Authenticate": "Bearer"},
        )
