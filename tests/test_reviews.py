import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from driverhire.errors import AlreadyReviewed, BookingNotEligible
from driverhire.models.driver_profile import DriverProfile
from driverhire.models.enums import BookingStatus, NotificationType
from driverhire.models.user import User
from driverhire.services.ratings import add_review
from tests.conftest import RecordingNotifier, auth_for, make_booking


@pytest.mark.asyncio
async def test_review_completed_booking(
    client: AsyncClient,
    db: AsyncSession,
    customer_user: User,
    driver_user: User,
    driver_profile: DriverProfile,
    notifier: RecordingNotifier,
):
    booking = await make_booking(db, customer_user, driver_profile, BookingStatus.COMPLETED)

    response = await client.post(
        f"/bookings/{booking.id}/review",
        json={"rating": 5, "comment": "Safe and on time"},
        headers=auth_for(customer_user),
    )
    assert response.status_code == 201
    data = response.json()
    assert data["rating"] == 5
    assert data["driver_id"] == str(driver_profile.id)
    assert data["customer_id"] == str(customer_user.id)

    events = notifier.events_for(driver_user.id)
    assert events[0]["type"] == NotificationType.REVIEW_RECEIVED.value

    profile = await client.get(f"/drivers/{driver_profile.id}")
    assert Decimal(profile.json()["rating_avg"]) == Decimal("5")
    assert profile.json()["total_reviews"] == 1


@pytest.mark.asyncio
async def test_rating_is_mean_of_all_reviews(
    client: AsyncClient,
    db: AsyncSession,
    customer_user: User,
    other_customer: User,
    driver_profile: DriverProfile,
):
    first = await make_booking(db, customer_user, driver_profile, BookingStatus.COMPLETED, start_in_days=1)
    second = await make_booking(db, other_customer, driver_profile, BookingStatus.COMPLETED, start_in_days=5)
    third = await make_booking(db, customer_user, driver_profile, BookingStatus.COMPLETED, start_in_days=9)

    for booking, customer, rating in ((first, customer_user, 5), (second, other_customer, 4), (third, customer_user, 4)):
        response = await client.post(
            f"/bookings/{booking.id}/review", json={"rating": rating}, headers=auth_for(customer)
        )
        assert response.status_code == 201

    profile = await client.get(f"/drivers/{driver_profile.id}")
    assert Decimal(profile.json()["rating_avg"]) == Decimal("4.33")
    assert profile.json()["total_reviews"] == 3

    reviews = await client.get(f"/drivers/{driver_profile.id}/reviews")
    assert reviews.status_code == 200
    assert reviews.json()["total"] == 3


@pytest.mark.asyncio
async def test_second_review_rejected(
    client: AsyncClient,
    db: AsyncSession,
    customer_user: User,
    driver_profile: DriverProfile,
):
    booking = await make_booking(db, customer_user, driver_profile, BookingStatus.COMPLETED)
    await client.post(f"/bookings/{booking.id}/review", json={"rating": 4}, headers=auth_for(customer_user))

    response = await client.post(
        f"/bookings/{booking.id}/review", json={"rating": 1}, headers=auth_for(customer_user)
    )
    assert response.status_code == 409
    assert response.json()["error"] == "already_reviewed"

    profile = await client.get(f"/drivers/{driver_profile.id}")
    assert profile.json()["total_reviews"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.ONGOING, BookingStatus.CANCELLED])
async def test_review_requires_completed_booking(
    client: AsyncClient,
    db: AsyncSession,
    customer_user: User,
    driver_profile: DriverProfile,
    status: BookingStatus,
):
    booking = await make_booking(db, customer_user, driver_profile, status)

    response = await client.post(
        f"/bookings/{booking.id}/review", json={"rating": 5}, headers=auth_for(customer_user)
    )
    assert response.status_code == 409
    assert response.json()["error"] == "booking_not_eligible"


@pytest.mark.asyncio
async def test_review_by_other_customer_rejected(
    client: AsyncClient,
    db: AsyncSession,
    customer_user: User,
    other_customer: User,
    driver_profile: DriverProfile,
):
    booking = await make_booking(db, customer_user, driver_profile, BookingStatus.COMPLETED)

    response = await client.post(
        f"/bookings/{booking.id}/review", json={"rating": 5}, headers=auth_for(other_customer)
    )
    assert response.status_code == 409


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [0, 6])
async def test_review_rating_out_of_range(
    client: AsyncClient,
    db: AsyncSession,
    customer_user: User,
    driver_profile: DriverProfile,
    rating: int,
):
    booking = await make_booking(db, customer_user, driver_profile, BookingStatus.COMPLETED)

    response = await client.post(
        f"/bookings/{booking.id}/review", json={"rating": rating}, headers=auth_for(customer_user)
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reviews_of_unknown_driver(client: AsyncClient):
    response = await client.get(f"/drivers/{uuid.uuid4()}/reviews")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_add_review_service_errors(
    db: AsyncSession,
    customer_user: User,
    driver_profile: DriverProfile,
    notifier: RecordingNotifier,
):
    pending = await make_booking(db, customer_user, driver_profile, BookingStatus.PENDING)
    with pytest.raises(BookingNotEligible):
        await add_review(db, pending.id, customer_user, 5, None, notifier)

    done = await make_booking(db, customer_user, driver_profile, BookingStatus.COMPLETED, start_in_days=10)
    await add_review(db, done.id, customer_user, 3, "Ok", notifier)
    with pytest.raises(AlreadyReviewed):
        await add_review(db, done.id, customer_user, 5, None, notifier)

    await db.refresh(driver_profile)
    assert driver_profile.total_reviews == 1
    assert Decimal(driver_profile.rating_avg) == Decimal("3")
