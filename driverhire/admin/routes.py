import uuid

import structlog
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from driverhire.database import get_db
from driverhire.dependencies import get_current_admin
from driverhire.drivers.routes import public_profile
from driverhire.errors import DriverNotFound
from driverhire.models.audit_log import AuditLog
from driverhire.models.driver_profile import DriverProfile
from driverhire.models.enums import BookingStatus, DriverVerificationStatus, NotificationType
from driverhire.models.user import User
from driverhire.schemas.admin import (
    PendingDriverListResponse,
    PendingDriverResponse,
    VerifyDriverRequest,
)
from driverhire.schemas.booking import BookingListResponse, BookingResponse
from driverhire.schemas.driver import DriverPublicResponse
from driverhire.services.bookings import list_bookings
from driverhire.services.notifications import Notifier, get_notifier
from driverhire.utils.rate_limit import limiter

logger = structlog.get_logger()
router = APIRouter(prefix="/admin", tags=["admin"])


# --- Driver verification ---


@router.get("/drivers/pending", response_model=PendingDriverListResponse)
@limiter.limit("30/minute")
async def pending_drivers(
    request: Request,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=10000),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """List driver profiles awaiting verification, oldest first."""
    pending = DriverProfile.verification_status == DriverVerificationStatus.PENDING.value
    result = await db.execute(
        select(DriverProfile)
        .options(selectinload(DriverProfile.user))
        .where(pending)
        .order_by(DriverProfile.created_at.asc(), DriverProfile.id)
        .offset(offset)
        .limit(limit)
    )
    profiles = result.scalars().all()
    total = await db.scalar(select(func.count(DriverProfile.id)).where(pending))

    return PendingDriverListResponse(
        items=[
            PendingDriverResponse(
                id=p.id,
                user_id=p.user_id,
                full_name=p.user.full_name,
                email=p.user.email,
                phone=p.user.phone,
                vehicle_brand=p.vehicle_brand,
                vehicle_type=p.vehicle_type,
                vehicle_plate=p.vehicle_plate,
                seat_capacity=p.seat_capacity,
                price_per_day=p.price_per_day,
                verification_status=p.verification_status,
                created_at=p.created_at,
            )
            for p in profiles
        ],
        total=total or 0,
        limit=limit,
        offset=offset,
    )


@router.patch("/drivers/{driver_id}/verify", response_model=DriverPublicResponse)
@limiter.limit("30/minute")
async def verify_driver(
    request: Request,
    driver_id: uuid.UUID,
    body: VerifyDriverRequest,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    """Approve or reject a driver. Only verified drivers can be booked."""
    result = await db.execute(
        select(DriverProfile)
        .where(DriverProfile.id == driver_id)
        .options(selectinload(DriverProfile.user))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    profile = result.scalar_one_or_none()
    if not profile:
        raise DriverNotFound()

    decision = DriverVerificationStatus(body.decision)
    profile.verification_status = decision.value

    db.add(AuditLog(
        action=f"driver_{decision.value}",
        admin_user_id=admin.id,
        target_user_id=profile.user_id,
        target_id=profile.id,
        detail=body.notes,
    ))
    await db.flush()

    logger.info(
        "driver_verification_changed",
        driver_id=str(driver_id),
        decision=decision.value,
        admin_id=str(admin.id),
    )

    if decision == DriverVerificationStatus.VERIFIED:
        message = "Your driver account has been verified. You can now receive bookings."
    else:
        message = (
            "Your driver verification was rejected. "
            + (body.notes or "Please contact an admin for more information.")
        )
    await notifier.notify_user(
        db,
        profile.user_id,
        NotificationType.DRIVER_VERIFICATION,
        "Driver verification",
        message,
        {"driver_id": str(profile.id), "status": decision.value},
    )

    return public_profile(profile)


# --- Bookings ---


@router.get("/bookings", response_model=BookingListResponse)
@limiter.limit("30/minute")
async def admin_list_bookings(
    request: Request,
    status_filter: BookingStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=10000),
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db),
):
    """List all bookings, newest first, optionally filtered by status."""
    bookings, total = await list_bookings(db, status=status_filter, limit=limit, offset=offset)
    return BookingListResponse(
        items=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        limit=limit,
        offset=offset,
    )
