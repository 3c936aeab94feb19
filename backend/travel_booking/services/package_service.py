"""
Package service handling catalogue CRUD and review aggregates.
"""

from datetime import date
from typing import Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from travel_booking.models.package import Package
from travel_booking.models.booking import Booking
from travel_booking.models.feedback import Feedback
from travel_booking.schemas.package import PackageCreate, PackageUpdate
from travel_booking.core.logging import get_logger
from travel_booking.services.pricing import get_package_or_404, utc_today

logger = get_logger(__name__)


async def create_package(db: AsyncSession, package_data: PackageCreate) -> Package:
    package = Package(**package_data.model_dump(), version=1)
    db.add(package)
    await db.flush()
    await db.refresh(package)

    logger.info("package_created", package_id=package.id, name=package.name, slots=package.available_slots)
    return package


async def get_package(db: AsyncSession, package_id: int) -> Package:
    return await get_package_or_404(db, package_id)


async def list_packages(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    destination: Optional[str] = None,
    upcoming_only: bool = True,
    today: Optional[date] = None,
) -> tuple[list[Package], int]:
    """
    List packages with pagination.
    Uses ix_packages_start_date for ordering and ix_packages_destination for filtering.
    """
    query = select(Package)

    if upcoming_only:
        query = query.where(Package.end_date >= (today or utc_today()))
    if destination:
        query = query.where(func.lower(Package.destination).contains(destination.lower()))

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    packages_query = (
        query
        .order_by(Package.start_date.asc(), Package.id.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(packages_query)
    return list(result.scalars().all()), total


async def update_package(db: AsyncSession, package_id: int, package_data: PackageUpdate) -> Package:
    """
    Partial update. Goes through the version column like a booking commit, so
    a staff edit racing a commit cannot silently overwrite the slot count.
    """
    package = await get_package_or_404(db, package_id)
    changes = package_data.model_dump(exclude_unset=True)
    if not changes:
        return package

    start_date = changes.get("start_date", package.start_date)
    end_date = changes.get("end_date", package.end_date)
    if end_date < start_date:
        raise HTTPException(
            status_code=422,
            detail="end_date must not be before start_date",
        )

    result = await db.execute(
        update(Package)
        .where(Package.id == package_id, Package.version == package.version)
        .values(**changes, version=Package.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Package was modified concurrently. Please reload and try again.",
        )

    await db.refresh(package)
    logger.info("package_updated", package_id=package_id, fields=sorted(changes))
    return package


async def get_rating_summary(db: AsyncSession, package_id: int) -> tuple[float, int]:
    """Average rating and review count across all bookings of a package."""
    result = await db.execute(
        select(func.avg(Feedback.rating), func.count(Feedback.id))
        .join(Booking, Booking.id == Feedback.booking_id)
        .where(Booking.package_id == package_id)
    )
    average, count = result.one()
    return round(float(average), 1) if average is not None else 0.0, count
