import uuid

import structlog
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from driverhire.database import get_db
from driverhire.dependencies import get_current_driver
from driverhire.errors import DriverNotFound
from driverhire.models.driver_profile import DriverProfile
from driverhire.models.enums import DriverVerificationStatus
from driverhire.models.user import User
from driverhire.schemas.driver import (
    AvailabilityResponse,
    AvailabilityUpdateRequest,
    DriverListResponse,
    DriverProfileResponse,
    DriverProfileUpdateRequest,
    DriverPublicResponse,
)
from driverhire.schemas.review import ReviewListResponse, ReviewResponse
from driverhire.services.ratings import list_driver_reviews
from driverhire.utils.rate_limit import LIST_RATE_LIMIT, limiter

logger = structlog.get_logger()
router = APIRouter()


def public_profile(profile: DriverProfile) -> DriverPublicResponse:
    """``profile.user`` must be loaded."""
    return DriverPublicResponse(
        id=profile.id,
        full_name=profile.user.full_name,
        city=profile.city,
        description=profile.description,
        vehicle_brand=profile.vehicle_brand,
        vehicle_type=profile.vehicle_type,
        vehicle_color=profile.vehicle_color,
        seat_capacity=profile.seat_capacity,
        price_per_day=profile.price_per_day,
        rating_avg=profile.rating_avg,
        total_reviews=profile.total_reviews,
        is_available=profile.is_available,
        verification_status=profile.verification_status,
    )


@router.get("", response_model=DriverListResponse)
@limiter.limit(LIST_RATE_LIMIT)
async def list_drivers(
    request: Request,
    city: str | None = Query(None, max_length=100),
    vehicle_type: str | None = Query(None, max_length=50),
    min_rating: float | None = Query(None, ge=0, le=5),
    max_price: float | None = Query(None, gt=0),
    search: str | None = Query(None, min_length=1, max_length=100),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0, le=10000),
    db: AsyncSession = Depends(get_db),
):
    """Verified drivers with an active account, best rated first.

    ``search`` matches the driver's name or vehicle brand.
    """
    filters = [
        DriverProfile.verification_status == DriverVerificationStatus.VERIFIED.value,
        User.is_active == True,
    ]
    if city:
        filters.append(func.lower(DriverProfile.city) == city.lower())
    if vehicle_type:
        filters.append(func.lower(DriverProfile.vehicle_type) == vehicle_type.lower())
    if min_rating is not None:
        filters.append(DriverProfile.rating_avg >= min_rating)
    if max_price is not None:
        filters.append(DriverProfile.price_per_day <= max_price)
    if search:
        pattern = f"%{search}%"
        filters.append(or_(User.full_name.ilike(pattern), DriverProfile.vehicle_brand.ilike(pattern)))

    result = await db.execute(
        select(DriverProfile)
        .join(User, User.id == DriverProfile.user_id)
        .where(*filters)
        .options(selectinload(DriverProfile.user))
        .order_by(DriverProfile.rating_avg.desc(), DriverProfile.total_reviews.desc(), DriverProfile.id)
        .offset(offset)
        .limit(limit)
    )
    total = await db.scalar(
        select(func.count(DriverProfile.id))
        .join(User, User.id == DriverProfile.user_id)
        .where(*filters)
    )
    return DriverListResponse(
        items=[public_profile(p) for p in result.scalars().all()],
        total=total or 0,
        limit=limit,
        offset=offset,
    )


@router.put("/profile", response_model=DriverProfileResponse)
@limiter.limit("30/minute")
async def update_driver_profile(
    request: Request,
    body: DriverProfileUpdateRequest,
    driver: tuple[User, DriverProfile] = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    """Update the current driver's price, availability and vehicle details.

    A new price applies to bookings created afterwards; existing bookings keep
    the price they were made at.
    """
    _, profile = driver

    update_data = body.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(profile, field, value)
    await db.flush()

    logger.info("driver_profile_updated", driver_id=str(profile.id), fields=sorted(update_data))
    return DriverProfileResponse.model_validate(profile)


@router.patch("/me/availability", response_model=AvailabilityResponse)
@limiter.limit("30/minute")
async def update_availability(
    request: Request,
    body: AvailabilityUpdateRequest,
    driver: tuple[User, DriverProfile] = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    """Start or stop accepting new bookings. Existing bookings are unaffected."""
    _, profile = driver
    profile.is_available = body.is_available
    await db.flush()

    logger.info("driver_availability_changed", driver_id=str(profile.id), is_available=body.is_available)
    return AvailabilityResponse.model_validate(profile)


@router.get("/{driver_id}", response_model=DriverPublicResponse)
@limiter.limit(LIST_RATE_LIMIT)
async def get_driver(
    request: Request,
    driver_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Public profile of a verified driver, including the current rating."""
    result = await db.execute(
        select(DriverProfile)
        .where(
            DriverProfile.id == driver_id,
            DriverProfile.verification_status == DriverVerificationStatus.VERIFIED.value,
        )
        .options(selectinload(DriverProfile.user))
        .execution_options(populate_existing=True)
    )
    profile = result.scalar_one_or_none()
    if profile is None:
        raise DriverNotFound()

    return public_profile(profile)


@router.get("/{driver_id}/reviews", response_model=ReviewListResponse)
@limiter.limit(LIST_RATE_LIMIT)
async def get_driver_reviews(
    request: Request,
    driver_id: uuid.UUID,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0, le=10000),
    db: AsyncSession = Depends(get_db),
):
    """Reviews of a driver, newest first."""
    reviews, total = await list_driver_reviews(db, driver_id, limit=limit, offset=offset)
    return ReviewListResponse(
        items=[ReviewResponse.model_validate(r) for r in reviews],
        total=total,
        limit=limit,
        offset=offset,
    )
