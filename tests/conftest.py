import os
import uuid
from collections.abc import AsyncGenerator
from datetime import date, time, timedelta
from decimal import Decimal

os.environ.setdefault("JWT_SECRET", "test-secret-for-unit-tests-minimum-32-chars")
os.environ["REALTIME_PUSH_ENABLED"] = "false"
os.environ["S3_ENDPOINT_URL"] = ""  # Force mock storage in tests

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from driverhire.auth.service import create_access_token
from driverhire.database import Base, discard_after_commit, drain_after_commit, get_db
from driverhire.main import app
from driverhire.models.booking import Booking
from driverhire.models.driver_profile import DriverProfile
from driverhire.models.enums import (
    BookingPaymentStatus,
    BookingStatus,
    DriverVerificationStatus,
    ServiceKind,
    UserRole,
)
from driverhire.models.user import User
from driverhire.services.notifications import NullChannel, Notifier, get_notifier

# Use SQLite for tests (in-memory)
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(TEST_DB_URL, echo=False)
TestSessionFactory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

DRIVER_PRICE_PER_DAY = Decimal("500000.00")


class RecordingNotifier(Notifier):
    """Notifier that keeps every event it was asked to deliver."""

    def __init__(self):
        super().__init__(NullChannel())
        self.user_events: list[dict] = []
        self.booking_events: list[dict] = []

    async def notify_user(self, db, user_id, notification_type, title, body, data=None):
        notification = await super().notify_user(db, user_id, notification_type, title, body, data)
        self.user_events.append(
            {
                "user_id": user_id,
                "type": notification.type,
                "title": title,
                "body": body,
                "data": notification.data,
            }
        )
        return notification

    async def notify_booking(self, db, booking_id, event, payload=None):
        await super().notify_booking(db, booking_id, event, payload)
        self.booking_events.append({"booking_id": booking_id, "event": event, **(payload or {})})

    def events_for(self, user_id: uuid.UUID) -> list[dict]:
        return [e for e in self.user_events if e["user_id"] == user_id]


@pytest_asyncio.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionFactory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def client(db: AsyncSession, notifier: RecordingNotifier) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        # Share the test session; no commit so each test stays isolated.
        try:
            yield db
        except Exception:
            discard_after_commit(db)
            raise
        await db.flush()
        await drain_after_commit(db)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    # Reset rate limiter storage between tests to avoid 429 errors
    from driverhire.utils.rate_limit import limiter
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _make_user(db: AsyncSession, email: str, role: UserRole, full_name: str, phone: str | None) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        role=role.value,
        full_name=full_name,
        phone=phone,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    return user


@pytest_asyncio.fixture
async def customer_user(db: AsyncSession) -> User:
    return await _make_user(db, "customer@test.com", UserRole.CUSTOMER, "Siti Rahma", "+620000000001")


@pytest_asyncio.fixture
async def other_customer(db: AsyncSession) -> User:
    return await _make_user(db, "other@test.com", UserRole.CUSTOMER, "Dewi Lestari", "+620000000002")


@pytest_asyncio.fixture
async def driver_user(db: AsyncSession) -> User:
    return await _make_user(db, "driver@test.com", UserRole.DRIVER, "Budi Santoso", "+620000000003")


@pytest_asyncio.fixture
async def admin_user(db: AsyncSession) -> User:
    return await _make_user(db, "admin@test.com", UserRole.ADMIN, "Admin", "+620000000000")


@pytest_asyncio.fixture
async def driver_profile(db: AsyncSession, driver_user: User) -> DriverProfile:
    profile = DriverProfile(
        id=uuid.uuid4(),
        user_id=driver_user.id,
        vehicle_brand="Toyota Avanza",
        vehicle_type="MPV",
        vehicle_plate="B 1234 XYZ",
        city="Jakarta",
        seat_capacity=6,
        price_per_day=DRIVER_PRICE_PER_DAY,
        verification_status=DriverVerificationStatus.VERIFIED.value,
        is_available=True,
        rating_avg=Decimal("0.00"),
        total_reviews=0,
    )
    db.add(profile)
    await db.flush()
    return profile


async def make_booking(
    db: AsyncSession,
    customer: User,
    driver: DriverProfile,
    status: BookingStatus = BookingStatus.PENDING,
    start_in_days: int = 3,
    days: int = 2,
    total_price: Decimal | None = None,
) -> Booking:
    """Insert a booking directly, bypassing the availability check."""
    start = date.today() + timedelta(days=start_in_days)
    price_per_day = Decimal(driver.price_per_day)
    booking = Booking(
        id=uuid.uuid4(),
        code=f"SP{uuid.uuid4().int % 10**8:08d}",
        customer_id=customer.id,
        driver_id=driver.id,
        service_kind=ServiceKind.TRANSPORT.value,
        start_date=start,
        end_date=start + timedelta(days=days - 1),
        start_time=time(8, 0),
        pickup_location="Jl. Sudirman 1, Jakarta",
        destination="Bandung",
        day_count=days,
        price_per_day=price_per_day,
        total_price=total_price if total_price is not None else price_per_day * days,
        status=status.value,
        payment_status=BookingPaymentStatus.UNPAID.value,
    )
    db.add(booking)
    await db.flush()
    return booking


def token_for(user: User) -> str:
    return create_access_token(str(user.id), user.role)


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def auth_for(user: User) -> dict[str, str]:
    return auth_header(token_for(user))
