"""
Package catalogue endpoints with Redis caching on list operations.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from travel_booking.api.dependencies import require_staff
from travel_booking.db.session import get_db
from travel_booking.models.user import User
from travel_booking.schemas.package import (
    PackageCreate, PackageUpdate, PackageResponse, PackageDetailResponse, PackageListResponse,
)
from travel_booking.services.package_service import (
    create_package, get_package, get_rating_summary, list_packages, update_package,
)
from travel_booking.services.cache_service import (
    get_cached_packages, set_cached_packages, invalidate_package_cache,
)
from travel_booking.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/packages", tags=["Packages"])


@router.post("/", response_model=PackageResponse, status_code=status.HTTP_201_CREATED)
async def create_package_endpoint(
    package_data: PackageCreate,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Create a new package. Staff only."""
    package = await create_package(db, package_data)
    await invalidate_package_cache()
    return package


@router.get("/", response_model=PackageListResponse)
async def list_packages_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    destination: Optional[str] = Query(None, max_length=255),
    upcoming_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    """
    List packages with pagination and an optional destination filter.
    Results are cached in Redis; the cache is dropped whenever slots or
    packages change.
    """
    cached = await get_cached_packages(page, page_size, destination, upcoming_only)
    if cached:
        logger.info("packages_list_cache_hit", page=page)
        cached["cached"] = True
        return PackageListResponse(**cached)

    packages, total = await list_packages(db, page, page_size, destination, upcoming_only)

    response_data = {
        "packages": [PackageResponse.model_validate(p).model_dump(mode="json") for p in packages],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_packages(page, page_size, destination, upcoming_only, response_data)
    return PackageListResponse(**response_data)


@router.get("/{package_id}", response_model=PackageDetailResponse)
async def get_package_endpoint(
    package_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Package detail with its review summary. Not cached (needs live slot counts)."""
    package = await get_package(db, package_id)
    average, count = await get_rating_summary(db, package_id)
    return PackageDetailResponse(
        **PackageResponse.model_validate(package).model_dump(),
        average_rating=average,
        review_count=count,
    )


@router.patch("/{package_id}", response_model=PackageResponse)
async def update_package_endpoint(
    package_id: int,
    package_data: PackageUpdate,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    package = await update_package(db, package_id, package_data)
    await invalidate_package_cache()
    return package
