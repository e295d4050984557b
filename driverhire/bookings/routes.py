import uuid

import structlog
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from driverhire.database import get_db
from driverhire.dependencies import get_current_customer, get_current_driver, get_current_user
from driverhire.models.booking import Booking
from driverhire.models.driver_profile import DriverProfile
from driverhire.models.enums import BookingStatus
from driverhire.models.user import User
from driverhire.schemas.booking import (
    BookingCreatedResponse,
    BookingCreateRequest,
    BookingDetailResponse,
    BookingListResponse,
    BookingResponse,
    CancelRequest,
    CustomerContact,
    DriverContact,
    StatusUpdateRequest,
    TrackingPointResponse,
)
from driverhire.schemas.payment import PaymentResponse
from driverhire.schemas.review import ReviewCreateRequest, ReviewResponse
from driverhire.services import bookings as booking_service
from driverhire.services.notifications import Notifier, get_notifier
from driverhire.services.ratings import add_review
from driverhire.utils.rate_limit import BOOKING_RATE_LIMIT, LIST_RATE_LIMIT, limiter

logger = structlog.get_logger()
router = APIRouter()


def _driver_contact(driver: DriverProfile) -> DriverContact:
    return DriverContact(
        driver_id=driver.id,
        full_name=driver.user.full_name,
        phone=driver.user.phone,
        vehicle_brand=driver.vehicle_brand,
        vehicle_plate=driver.vehicle_plate,
    )


def _listing(bookings: list[Booking], total: int, limit: int, offset: int) -> BookingListResponse:
    return BookingListResponse(
        items=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(BOOKING_RATE_LIMIT)
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    customer: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Book a verified driver for a date range (customer only)."""
    booking = await booking_service.create_booking(db, customer, body, notifier)
    return BookingCreatedResponse(
        id=booking.id,
        code=booking.code,
        status=booking.status,
        day_count=booking.day_count,
        price_per_day=booking.price_per_day,
        total_price=booking.total_price,
        driver=_driver_contact(booking.driver),
    )


@router.get("/mine", response_model=BookingListResponse)
@limiter.limit(LIST_RATE_LIMIT)
async def list_my_bookings(
    request: Request,
    status_filter: BookingStatus | None = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0, le=10000),
    customer: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    """List the customer's bookings, newest first."""
    bookings, total = await booking_service.list_bookings(
        db, customer_id=customer.id, status=status_filter, limit=limit, offset=offset
    )
    return _listing(bookings, total, limit, offset)


@router.get("/driver", response_model=BookingListResponse)
@limiter.limit(LIST_RATE_LIMIT)
async def list_driver_bookings(
    request: Request,
    status_filter: BookingStatus | None = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0, le=10000),
    driver: tuple[User, DriverProfile] = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    """List the bookings assigned to the current driver, latest trip first."""
    _, profile = driver
    bookings, total = await booking_service.list_bookings(
        db, driver_id=profile.id, status=status_filter, limit=limit, offset=offset
    )
    return _listing(bookings, total, limit, offset)


@router.get("/{booking_id}", response_model=BookingDetailResponse)
@limiter.limit(LIST_RATE_LIMIT)
async def get_booking(
    request: Request,
    booking_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Booking detail for its customer, its driver or an admin."""
    detail = await booking_service.get_booking_detail(db, booking_id, user)
    booking = detail.booking
    return BookingDetailResponse(
        **BookingResponse.model_validate(booking).model_dump(),
        driver=_driver_contact(booking.driver),
        customer=CustomerContact(
            customer_id=booking.customer.id,
            full_name=booking.customer.full_name,
            phone=booking.customer.phone,
        ),
        payments=[PaymentResponse.model_validate(p) for p in booking.payments],
        latest_tracking=(
            TrackingPointResponse.model_validate(detail.latest_tracking)
            if detail.latest_tracking
            else None
        ),
    )


@router.patch("/{booking_id}/status", response_model=BookingResponse)
@limiter.limit(BOOKING_RATE_LIMIT)
async def update_booking_status(
    request: Request,
    booking_id: uuid.UUID,
    body: StatusUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Move a booking along its lifecycle."""
    booking = await booking_service.transition_booking(
        db, booking_id, user, body.status, notifier, reason=body.reason
    )
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
@limiter.limit(BOOKING_RATE_LIMIT)
async def cancel_booking(
    request: Request,
    booking_id: uuid.UUID,
    body: CancelRequest,
    customer: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Cancel a pending or confirmed booking (customer only)."""
    booking = await booking_service.cancel_booking(db, booking_id, customer, body.reason, notifier)
    return BookingResponse.model_validate(booking)


@router.post(
    "/{booking_id}/review",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("10/minute")
async def review_booking(
    request: Request,
    booking_id: uuid.UUID,
    body: ReviewCreateRequest,
    customer: User = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Rate the driver of a completed booking."""
    review = await add_review(db, booking_id, customer, body.rating, body.comment, notifier)
    return ReviewResponse.model_validate(review)
