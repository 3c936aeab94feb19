"""
Pydantic schemas for user-related request/response validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

PASSWORD_RULE = "Password must contain at least one uppercase letter, one lowercase letter and one number."


def check_password_strength(value: str) -> str:
    if not (
        any(c.islower() for c in value)
        and any(c.isupper() for c in value)
        and any(c.isdigit() for c in value)
    ):
        raise ValueError(PASSWORD_RULE)
    return value


class UserCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(..., pattern=r"^\d{9,11}$")
    password: str = Field(..., min_length=8, max_length=128)
    address: Optional[str] = Field(None, max_length=500)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)


class UserLogin(BaseModel):
    # Plain str: lockouts are keyed by the identifier exactly as submitted
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class UserResponse(BaseModel):
    id: int
    full_name: str
    email: str
    phone: Optional[str]
    address: Optional[str]
    role: str
    is_banned: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    claims: dict = {}


class LoginRejected(BaseModel):
    outcome: str
    reason: Optional[str] = None
    message: str
    remaining_attempts: Optional[int] = None
    retry_after_seconds: Optional[int] = None


class BanUpdate(BaseModel):
    banned: bool


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, pattern=r"^(\+60)?\d{9,11}$")
    address: Optional[str] = Field(None, max_length=500)


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=8, max_length=128)
    confirm_new_password: str

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)

    @model_validator(mode="after")
    def passwords_match(self) -> "PasswordChange":
        if self.new_password != self.confirm_new_password:
            raise ValueError("Passwords do not match")
        return self


class ForgotPassword(BaseModel):
    email: EmailStr


class PasswordReset(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)

    @model_validator(mode="after")
    def passwords_match(self) -> "PasswordReset":
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class Availability(BaseModel):
    available: bool
    message: Optional[str] = None
