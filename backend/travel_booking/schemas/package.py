"""
Pydantic schemas for travel package request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class PackageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[str] = Field(None, max_length=100)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    start_date: date
    end_date: date
    available_slots: int = Field(..., ge=0, le=100000)
    image_url: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def dates_ordered(self) -> "PackageCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class PackageUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    destination: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[str] = Field(None, max_length=100)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    available_slots: Optional[int] = Field(None, ge=0, le=100000)
    image_url: Optional[str] = Field(None, max_length=500)


class PackageResponse(BaseModel):
    id: int
    name: str
    destination: str
    description: Optional[str]
    category: Optional[str]
    price: Decimal
    start_date: date
    end_date: date
    available_slots: int
    image_url: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class PackageDetailResponse(PackageResponse):
    average_rating: float = 0.0
    review_count: int = 0


class PackageListResponse(BaseModel):
    packages: list[PackageResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False
