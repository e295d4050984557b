import uuid

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from driverhire.errors import AlreadyReviewed, BookingNotEligible, DriverNotFound
from driverhire.metrics import REVIEWS_CREATED
from driverhire.models.driver_profile import DriverProfile
from driverhire.models.enums import BookingStatus, NotificationType
from driverhire.models.review import Review
from driverhire.models.user import User
from driverhire.services.bookings import lock_booking
from driverhire.services.notifications import Notifier

logger = structlog.get_logger()


async def recompute_driver_rating(db: AsyncSession, driver_id: uuid.UUID) -> None:
    """Set the driver's rating and review count from all of their reviews in one UPDATE.

    A single statement with scalar subqueries keeps concurrent reviews from
    overwriting each other's aggregate.
    """
    avg_subq = (
        select(func.coalesce(func.round(func.avg(Review.rating), 2), 0))
        .where(Review.driver_id == driver_id)
        .correlate_except(Review)
        .scalar_subquery()
    )
    count_subq = (
        select(func.count(Review.id))
        .where(Review.driver_id == driver_id)
        .correlate_except(Review)
        .scalar_subquery()
    )
    await db.execute(
        update(DriverProfile)
        .where(DriverProfile.id == driver_id)
        .values(rating_avg=avg_subq, total_reviews=count_subq)
        .execution_options(synchronize_session=False)
    )
    await db.flush()


async def add_review(
    db: AsyncSession,
    booking_id: uuid.UUID,
    customer: User,
    rating: int,
    comment: str | None,
    notifier: Notifier,
) -> Review:
    """Review a completed booking once and refresh the driver's published rating."""
    booking = await lock_booking(db, booking_id)
    if booking.customer_id != customer.id:
        raise BookingNotEligible("You can only review your own bookings")
    if BookingStatus(booking.status) != BookingStatus.COMPLETED:
        raise BookingNotEligible("Only completed bookings can be reviewed")

    existing = await db.execute(select(Review.id).where(Review.booking_id == booking.id))
    if existing.scalar_one_or_none() is not None:
        raise AlreadyReviewed()

    review = Review(
        booking_id=booking.id,
        customer_id=customer.id,
        driver_id=booking.driver_id,
        rating=rating,
        comment=comment,
    )
    db.add(review)
    try:
        await db.flush()
    except IntegrityError:
        # Lost the race against a concurrent review; the unique constraint decides.
        raise AlreadyReviewed()

    await recompute_driver_rating(db, booking.driver_id)

    REVIEWS_CREATED.inc()
    logger.info(
        "review_created",
        review_id=str(review.id),
        booking_id=str(booking.id),
        driver_id=str(booking.driver_id),
        rating=rating,
    )

    await notifier.notify_user(
        db,
        booking.driver.user_id,
        NotificationType.REVIEW_RECEIVED,
        "New review",
        f"{customer.full_name} rated booking {booking.code} {rating}/5",
        {"booking_id": str(booking.id), "review_id": str(review.id)},
    )
    return review


async def list_driver_reviews(
    db: AsyncSession,
    driver_id: uuid.UUID,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Review], int]:
    exists = await db.execute(select(DriverProfile.id).where(DriverProfile.id == driver_id))
    if exists.scalar_one_or_none() is None:
        raise DriverNotFound()

    result = await db.execute(
        select(Review)
        .where(Review.driver_id == driver_id)
        .order_by(Review.created_at.desc(), Review.id)
        .offset(offset)
        .limit(limit)
    )
    total = await db.scalar(select(func.count(Review.id)).where(Review.driver_id == driver_id))
    return list(result.scalars().all()), total or 0
