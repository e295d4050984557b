import re
import uuid
from datetime import date, time, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from driverhire.errors import DriverUnavailable, InvalidInput, ScheduleConflict
from driverhire.models.booking import Booking
from driverhire.models.driver_profile import DriverProfile
from driverhire.models.enums import BookingPaymentStatus, BookingStatus, ServiceKind
from driverhire.models.user import User
from driverhire.services.bookings import _insert_with_unique_code
from driverhire.services.pricing import (
    calculate_trip_price,
    check_and_price,
    count_trip_days,
    find_conflicting_booking,
)
from driverhire.utils.code_generator import generate_booking_code
from tests.conftest import make_booking


# --- Day counting and price ---


def test_count_trip_days_is_inclusive():
    start = date(2025, 7, 1)
    assert count_trip_days(start, start) == 1
    assert count_trip_days(start, date(2025, 7, 3)) == 3
    assert count_trip_days(date(2025, 2, 27), date(2025, 3, 2)) == 4


def test_count_trip_days_rejects_reversed_range():
    with pytest.raises(InvalidInput):
        count_trip_days(date(2025, 7, 3), date(2025, 7, 1))


def test_calculate_trip_price():
    assert calculate_trip_price(Decimal("500000"), 3) == Decimal("1500000.00")
    assert calculate_trip_price(Decimal("333333.33"), 3) == Decimal("999999.99")


# --- Booking codes ---


def test_booking_code_format():
    code = generate_booking_code(today=date(2025, 7, 14))
    assert re.fullmatch(r"SP2507\d{4}", code)


def test_booking_code_custom_prefix():
    assert generate_booking_code(today=date(2026, 1, 2), prefix="DH").startswith("DH2601")


def _unsaved_booking(customer: User, driver: DriverProfile) -> Booking:
    start = date.today() + timedelta(days=20)
    return Booking(
        id=uuid.uuid4(),
        customer_id=customer.id,
        driver_id=driver.id,
        service_kind=ServiceKind.TRANSPORT.value,
        start_date=start,
        end_date=start,
        start_time=time(9, 0),
        pickup_location="Jl. Gatot Subroto 5, Jakarta",
        destination="Depok",
        day_count=1,
        price_per_day=driver.price_per_day,
        total_price=driver.price_per_day,
        status=BookingStatus.PENDING.value,
        payment_status=BookingPaymentStatus.UNPAID.value,
    )


@pytest.mark.asyncio
async def test_booking_code_retries_on_collision(
    db: AsyncSession, customer_user: User, driver_profile: DriverProfile
):
    taken = await make_booking(db, customer_user, driver_profile)
    codes = iter([taken.code, "SP25070001"])
    booking = _unsaved_booking(customer_user, driver_profile)

    with patch("driverhire.services.bookings.generate_booking_code", side_effect=lambda: next(codes)):
        assert await _insert_with_unique_code(db, booking) == "SP25070001"

    assert booking.code == "SP25070001"
    assert await db.get(Booking, booking.id) is booking


@pytest.mark.asyncio
async def test_booking_code_taken_between_lookup_and_insert(
    db: AsyncSession, customer_user: User, driver_profile: DriverProfile
):
    # The first lookup misses a code another request inserts right after it.
    taken = await make_booking(db, customer_user, driver_profile)
    codes = iter([taken.code, "SP25070002"])
    booking = _unsaved_booking(customer_user, driver_profile)

    with (
        patch("driverhire.services.bookings.generate_booking_code", side_effect=lambda: next(codes)),
        patch(
            "driverhire.services.bookings._code_in_use",
            new=AsyncMock(side_effect=[False, True, False]),
        ),
    ):
        assert await _insert_with_unique_code(db, booking) == "SP25070002"

    codes_in_db = (await db.execute(select(Booking.code).order_by(Booking.code))).scalars().all()
    assert codes_in_db == sorted([taken.code, "SP25070002"])


@pytest.mark.asyncio
async def test_booking_code_gives_up_after_max_attempts(
    db: AsyncSession, customer_user: User, driver_profile: DriverProfile
):
    taken = await make_booking(db, customer_user, driver_profile)

    with patch("driverhire.services.bookings.generate_booking_code", return_value=taken.code):
        with pytest.raises(RuntimeError):
            await _insert_with_unique_code(db, _unsaved_booking(customer_user, driver_profile))


# --- Availability ---


@pytest.mark.asyncio
async def test_find_conflicting_booking_boundaries(
    db: AsyncSession, customer_user: User, driver_profile: DriverProfile
):
    existing = await make_booking(db, customer_user, driver_profile, BookingStatus.CONFIRMED, start_in_days=10, days=3)
    start, end = existing.start_date, existing.end_date

    assert await find_conflicting_booking(db, driver_profile.id, end, end + timedelta(days=2)) is not None
    assert await find_conflicting_booking(db, driver_profile.id, start - timedelta(days=2), start) is not None
    assert await find_conflicting_booking(db, driver_profile.id, start - timedelta(days=5), end + timedelta(days=5)) is not None
    assert await find_conflicting_booking(db, driver_profile.id, end + timedelta(days=1), end + timedelta(days=4)) is None
    assert await find_conflicting_booking(db, driver_profile.id, start - timedelta(days=3), start - timedelta(days=1)) is None
    assert await find_conflicting_booking(db, uuid.uuid4(), start, end) is None


@pytest.mark.asyncio
async def test_check_and_price_quotes_trip(db: AsyncSession, driver_profile: DriverProfile):
    start = date.today() + timedelta(days=7)
    quote = await check_and_price(db, driver_profile.id, start, start + timedelta(days=3))

    assert quote.driver.id == driver_profile.id
    assert quote.day_count == 4
    assert quote.total_price == Decimal("2000000.00")


@pytest.mark.asyncio
async def test_check_and_price_schedule_conflict(
    db: AsyncSession, customer_user: User, driver_profile: DriverProfile
):
    existing = await make_booking(db, customer_user, driver_profile, start_in_days=7, days=2)

    with pytest.raises(ScheduleConflict):
        await check_and_price(db, driver_profile.id, existing.end_date, existing.end_date)


@pytest.mark.asyncio
async def test_check_and_price_inactive_driver_account(
    db: AsyncSession, driver_user: User, driver_profile: DriverProfile
):
    driver_user.is_active = False
    await db.flush()
    start = date.today() + timedelta(days=7)

    with pytest.raises(DriverUnavailable):
        await check_and_price(db, driver_profile.id, start, start)


@pytest.mark.asyncio
async def test_check_and_price_driver_lock_failure_is_a_conflict(
    db: AsyncSession, driver_profile: DriverProfile
):
    execute = db.execute

    async def lock_fails(statement, *args, **kwargs):
        if getattr(statement, "_for_update_arg", None) is not None:
            raise OperationalError("SELECT ... FOR UPDATE", {}, Exception("lock timeout"))
        return await execute(statement, *args, **kwargs)

    before = REGISTRY.get_sample_value("driverhire_booking_conflicts_total") or 0
    start = date.today() + timedelta(days=7)

    with patch.object(db, "execute", new=lock_fails):
        with pytest.raises(ScheduleConflict):
            await check_and_price(db, driver_profile.id, start, start)

    assert REGISTRY.get_sample_value("driverhire_booking_conflicts_total") == before + 1
    assert await db.scalar(select(func.count(Booking.id))) == 0


@pytest.mark.asyncio
async def test_check_and_price_waits_for_the_driver_lock(
    db: AsyncSession, customer_user: User, driver_profile: DriverProfile
):
    execute = db.execute
    locking = []

    async def record(statement, *args, **kwargs):
        if getattr(statement, "_for_update_arg", None) is not None:
            locking.append(statement._for_update_arg)
        return await execute(statement, *args, **kwargs)

    existing = await make_booking(db, customer_user, driver_profile, start_in_days=7, days=3)

    with patch.object(db, "execute", new=record):
        quote = await check_and_price(
            db, driver_profile.id, existing.end_date + timedelta(days=1), existing.end_date + timedelta(days=2)
        )

    assert quote.day_count == 2
    assert len(locking) == 1
    assert locking[0].nowait is False
    assert locking[0].skip_locked is False
