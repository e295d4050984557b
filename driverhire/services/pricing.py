import uuid
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

import structlog
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from driverhire.errors import DriverUnavailable, InvalidInput, ScheduleConflict
from driverhire.metrics import BOOKING_CONFLICTS
from driverhire.models.booking import Booking
from driverhire.models.driver_profile import DriverProfile
from driverhire.models.enums import DriverVerificationStatus
from driverhire.utils.booking_state import ACTIVE_STATUSES

logger = structlog.get_logger()


@dataclass(frozen=True)
class TripQuote:
    driver: DriverProfile
    day_count: int
    price_per_day: Decimal
    total_price: Decimal


def count_trip_days(start_date: date, end_date: date) -> int:
    """Number of billable days, counting both endpoints. A same-day trip is one day."""
    if end_date < start_date:
        raise InvalidInput("End date must be on or after start date")
    return (end_date - start_date).days + 1


def calculate_trip_price(price_per_day: Decimal, day_count: int) -> Decimal:
    return (Decimal(price_per_day) * day_count).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


async def find_conflicting_booking(
    db: AsyncSession,
    driver_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> Booking | None:
    """Return an active booking of the driver whose closed date range overlaps [start, end]."""
    result = await db.execute(
        select(Booking)
        .where(
            Booking.driver_id == driver_id,
            Booking.status.in_([s.value for s in ACTIVE_STATUSES]),
            Booking.start_date <= end_date,
            Booking.end_date >= start_date,
        )
        .limit(1)
    )
    return result.scalar_one_or_none()


async def check_and_price(
    db: AsyncSession,
    driver_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> TripQuote:
    """Decide whether the driver can take the trip and price it.

    Locks the driver row so bookings of one driver are checked one at a time;
    a second request waits for the first to commit and then sees its booking.
    The caller must insert its booking in the same transaction for the check
    to hold.
    """
    day_count = count_trip_days(start_date, end_date)

    # Lock timeouts and deadlocks surface as OperationalError.
    try:
        result = await db.execute(
            select(DriverProfile)
            .where(DriverProfile.id == driver_id)
            .options(selectinload(DriverProfile.user))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    except OperationalError:
        logger.warning("booking_driver_lock_failed", driver_id=str(driver_id))
        BOOKING_CONFLICTS.inc()
        raise ScheduleConflict("Driver is being booked by another request. Please try again.")
    driver = result.scalar_one_or_none()
    if driver is None:
        raise DriverUnavailable("Driver not found")
    if driver.verification_status != DriverVerificationStatus.VERIFIED:
        raise DriverUnavailable("Driver is not verified")
    if not driver.is_available or not driver.user.is_active:
        raise DriverUnavailable("Driver is not accepting bookings")

    conflict = await find_conflicting_booking(db, driver.id, start_date, end_date)
    if conflict is not None:
        logger.info(
            "booking_schedule_conflict",
            driver_id=str(driver.id),
            conflicting_booking_id=str(conflict.id),
        )
        BOOKING_CONFLICTS.inc()
        raise ScheduleConflict()

    price_per_day = Decimal(driver.price_per_day)
    return TripQuote(
        driver=driver,
        day_count=day_count,
        price_per_day=price_per_day,
        total_price=calculate_trip_price(price_per_day, day_count),
    )
