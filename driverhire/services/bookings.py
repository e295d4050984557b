"""Booking ledger: creation, the status state machine and detail reads.

Every write here runs inside the request transaction opened by ``get_db``;
nothing is committed until the handler returns, so a failure at any step
leaves no partial booking behind.
"""
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from driverhire.config import settings
from driverhire.errors import BookingNotFound, Forbidden, InvalidInput, NotCancellable, Unauthorized
from driverhire.metrics import BOOKING_TRANSITIONS, BOOKINGS_CREATED
from driverhire.models.booking import Booking
from driverhire.models.driver_profile import DriverProfile
from driverhire.models.enums import (
    BookingPaymentStatus,
    BookingStatus,
    CancelledBy,
    NotificationType,
    UserRole,
)
from driverhire.models.tracking import TrackingPoint
from driverhire.models.user import User
from driverhire.schemas.booking import BookingCreateRequest
from driverhire.services.notifications import Notifier
from driverhire.services.pricing import check_and_price
from driverhire.utils.booking_state import CUSTOMER_CANCELLABLE, validate_transition
from driverhire.utils.code_generator import generate_booking_code

logger = structlog.get_logger()

STATUS_MESSAGES: dict[BookingStatus, str] = {
    BookingStatus.CONFIRMED: "Your booking has been confirmed by the driver",
    BookingStatus.ONGOING: "Your driver is on the way",
    BookingStatus.COMPLETED: "Trip completed. Please rate your driver",
    BookingStatus.CANCELLED: "Booking cancelled.",
}


@dataclass
class BookingDetail:
    booking: Booking
    latest_tracking: TrackingPoint | None


def booking_party(booking: Booking, actor: User) -> CancelledBy | None:
    """Return the actor's relation to the booking, or None for outsiders.

    ``booking.driver`` must be loaded.
    """
    role = UserRole(actor.role)
    if role == UserRole.ADMIN:
        return CancelledBy.ADMIN
    if role == UserRole.CUSTOMER and booking.customer_id == actor.id:
        return CancelledBy.CUSTOMER
    if role == UserRole.DRIVER and booking.driver.user_id == actor.id:
        return CancelledBy.DRIVER
    return None


async def lock_booking(db: AsyncSession, booking_id: uuid.UUID) -> Booking:
    """Load a booking with its driver and hold its row lock until the transaction ends."""
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .options(
            selectinload(Booking.driver).selectinload(DriverProfile.user),
            selectinload(Booking.customer),
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingNotFound()
    return booking


async def _code_in_use(db: AsyncSession, code: str) -> bool:
    return await db.scalar(select(Booking.id).where(Booking.code == code)) is not None


async def _insert_with_unique_code(db: AsyncSession, booking: Booking) -> str:
    """Give the booking a fresh code and insert it.

    A concurrent request can claim the same code between the lookup and the
    insert; the insert then fails on ``uq_booking_code`` inside a savepoint and
    a new code is drawn.
    """
    for _ in range(settings.BOOKING_CODE_MAX_ATTEMPTS):
        code = generate_booking_code()
        if await _code_in_use(db, code):
            logger.warning("booking_code_collision", code=code)
            continue
        booking.code = code
        try:
            async with db.begin_nested():
                db.add(booking)
                await db.flush()
        except IntegrityError:
            if booking in db:
                db.expunge(booking)
            if not await _code_in_use(db, code):
                raise
            logger.warning("booking_code_collision", code=code, on_insert=True)
            continue
        return code
    raise RuntimeError("Could not allocate a unique booking code")


async def create_booking(
    db: AsyncSession,
    customer: User,
    data: BookingCreateRequest,
    notifier: Notifier,
) -> Booking:
    """Check availability, price the trip and insert a pending booking.

    The driver row stays locked from the availability check until commit, so a
    concurrent request for the same driver waits and then sees this booking.
    """
    if data.start_date < date.today():
        raise InvalidInput("Start date cannot be in the past")
    if data.end_date < data.start_date:
        raise InvalidInput("End date must be on or after start date")

    quote = await check_and_price(db, data.driver_id, data.start_date, data.end_date)

    booking = Booking(
        id=uuid.uuid4(),
        customer_id=customer.id,
        driver_id=quote.driver.id,
        service_kind=data.service_kind.value,
        start_date=data.start_date,
        end_date=data.end_date,
        start_time=data.start_time,
        pickup_location=data.pickup_location,
        destination=data.destination,
        passenger_count=data.passenger_count,
        cargo_details=data.cargo_details,
        notes=data.notes,
        day_count=quote.day_count,
        price_per_day=quote.price_per_day,
        total_price=quote.total_price,
        status=BookingStatus.PENDING.value,
        payment_status=BookingPaymentStatus.UNPAID.value,
        driver=quote.driver,
        customer=customer,
    )
    code = await _insert_with_unique_code(db, booking)

    BOOKINGS_CREATED.labels(service_kind=data.service_kind.value).inc()
    logger.info(
        "booking_created",
        booking_id=str(booking.id),
        code=code,
        driver_id=str(quote.driver.id),
        day_count=quote.day_count,
        total_price=str(quote.total_price),
    )

    await notifier.notify_user(
        db,
        quote.driver.user_id,
        NotificationType.BOOKING_CREATED,
        "New booking",
        f"You have a new {data.service_kind.value.replace('_', ' ')} booking from {customer.full_name}",
        {"booking_id": str(booking.id), "code": code},
    )
    await notifier.notify_booking(
        db, booking.id, "booking_created", {"status": BookingStatus.PENDING.value}
    )
    return booking


def _append_cancel_reason(notes: str | None, reason: str) -> str:
    line = f"Cancelled: {reason}"
    return f"{notes}\n{line}" if notes else line


def _counterparties(booking: Booking, party: CancelledBy) -> list[uuid.UUID]:
    if party == CancelledBy.CUSTOMER:
        return [booking.driver.user_id]
    if party == CancelledBy.DRIVER:
        return [booking.customer_id]
    return [booking.customer_id, booking.driver.user_id]


async def transition_booking(
    db: AsyncSession,
    booking_id: uuid.UUID,
    actor: User,
    requested: BookingStatus,
    notifier: Notifier,
    reason: str | None = None,
) -> Booking:
    """Move a booking to ``requested`` after re-reading its status under a row lock.

    The owning driver and admins may make any legal transition; the customer
    may only cancel, and only while the booking is pending or confirmed.
    """
    booking = await lock_booking(db, booking_id)
    party = booking_party(booking, actor)
    if party is None:
        raise Unauthorized("You are not a participant of this booking")

    current = BookingStatus(booking.status)
    requested = BookingStatus(requested)
    if party == CancelledBy.CUSTOMER:
        if requested != BookingStatus.CANCELLED:
            raise Unauthorized("Customers can only cancel their bookings")
        if current not in CUSTOMER_CANCELLABLE:
            raise Unauthorized("Booking can no longer be cancelled by the customer")

    validate_transition(current, requested)

    now = datetime.now(timezone.utc)
    booking.status = requested.value
    if requested == BookingStatus.CONFIRMED:
        booking.confirmed_at = now
    elif requested == BookingStatus.ONGOING:
        booking.started_at = now
    elif requested == BookingStatus.COMPLETED:
        booking.completed_at = now
    elif requested == BookingStatus.CANCELLED:
        booking.cancelled_at = now
        booking.cancelled_by = party.value
        if reason:
            booking.notes = _append_cancel_reason(booking.notes, reason)
    await db.flush()

    BOOKING_TRANSITIONS.labels(status=requested.value).inc()
    logger.info(
        "booking_status_changed",
        booking_id=str(booking.id),
        from_status=current.value,
        to_status=requested.value,
        actor=party.value,
    )

    message = STATUS_MESSAGES[requested]
    if requested == BookingStatus.CANCELLED and reason:
        message = f"{message} {reason}"
    notification_type = (
        NotificationType.BOOKING_CANCELLED
        if requested == BookingStatus.CANCELLED
        else NotificationType.BOOKING_UPDATED
    )
    for recipient in _counterparties(booking, party):
        await notifier.notify_user(
            db,
            recipient,
            notification_type,
            f"Booking {booking.code}",
            message,
            {"booking_id": str(booking.id), "status": requested.value},
        )
    await notifier.notify_booking(
        db,
        booking.id,
        "status_changed",
        {"status": requested.value, "message": message},
    )
    return booking


async def cancel_booking(
    db: AsyncSession,
    booking_id: uuid.UUID,
    customer: User,
    reason: str,
    notifier: Notifier,
) -> Booking:
    """Customer-initiated cancellation, allowed only from pending or confirmed."""
    booking = await lock_booking(db, booking_id)
    if UserRole(customer.role) != UserRole.CUSTOMER or booking.customer_id != customer.id:
        raise Unauthorized("Only the customer who made the booking can cancel it")
    if BookingStatus(booking.status) not in CUSTOMER_CANCELLABLE:
        raise NotCancellable()
    return await transition_booking(
        db, booking_id, customer, BookingStatus.CANCELLED, notifier, reason=reason
    )


async def get_booking_detail(
    db: AsyncSession,
    booking_id: uuid.UUID,
    actor: User,
) -> BookingDetail:
    """Booking with payments (newest first) and, while ongoing, the latest tracking point."""
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id)
        .options(
            selectinload(Booking.driver).selectinload(DriverProfile.user),
            selectinload(Booking.customer),
            selectinload(Booking.payments),
        )
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingNotFound()
    if booking_party(booking, actor) is None:
        raise Forbidden("You do not have access to this booking")

    latest_tracking = None
    if BookingStatus(booking.status) == BookingStatus.ONGOING:
        tracking_result = await db.execute(
            select(TrackingPoint)
            .where(TrackingPoint.booking_id == booking.id)
            .order_by(TrackingPoint.created_at.desc())
            .limit(1)
        )
        latest_tracking = tracking_result.scalar_one_or_none()

    return BookingDetail(booking=booking, latest_tracking=latest_tracking)


async def list_bookings(
    db: AsyncSession,
    *,
    customer_id: uuid.UUID | None = None,
    driver_id: uuid.UUID | None = None,
    status: BookingStatus | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Booking], int]:
    """Paginated booking listing scoped to a customer, a driver, or (admin) everyone."""
    filters = []
    if customer_id is not None:
        filters.append(Booking.customer_id == customer_id)
    if driver_id is not None:
        filters.append(Booking.driver_id == driver_id)
    if status is not None:
        filters.append(Booking.status == BookingStatus(status).value)

    order = Booking.start_date.desc() if driver_id is not None else Booking.created_at.desc()
    result = await db.execute(
        select(Booking).where(*filters).order_by(order, Booking.id).offset(offset).limit(limit)
    )
    total = await db.scalar(select(func.count(Booking.id)).where(*filters))
    return list(result.scalars().all()), total or 0
