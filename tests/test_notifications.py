import asyncio
import json
import uuid
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from driverhire.database import discard_after_commit, drain_after_commit, pending_after_commit
from driverhire.models.enums import NotificationType
from driverhire.models.user import User
from driverhire.services import notifications as notifications_module
from driverhire.services.notifications import (
    NullChannel,
    Notifier,
    RedisChannel,
    booking_channel,
    user_channel,
)
from tests.conftest import RecordingNotifier, auth_for


class FakeChannel:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.published: list[tuple[str, dict]] = []

    async def publish(self, channel: str, message: dict) -> None:
        if self.fail:
            raise ConnectionError("redis down")
        self.published.append((channel, message))

    async def close(self) -> None:
        return None


async def _settle_background_tasks() -> None:
    await asyncio.gather(*list(notifications_module._background_tasks))


# --- Notifier ---


@pytest.mark.asyncio
async def test_push_is_published_only_after_commit(db: AsyncSession, customer_user: User):
    channel = FakeChannel()
    notifier = Notifier(channel)

    notification = await notifier.notify_user(
        db, customer_user.id, NotificationType.BOOKING_UPDATED, "Booking SP1", "Confirmed", {"booking_id": "b1"}
    )
    assert notification.id is not None
    assert notification.data == {"booking_id": "b1", "type": "booking_updated"}
    assert channel.published == []
    assert len(pending_after_commit(db)) == 1

    await drain_after_commit(db)
    await _settle_background_tasks()

    assert len(channel.published) == 1
    name, message = channel.published[0]
    assert name == user_channel(customer_user.id)
    assert message["id"] == str(notification.id)
    assert message["type"] == "booking_updated"
    assert pending_after_commit(db) == []


@pytest.mark.asyncio
async def test_booking_push_payload(db: AsyncSession):
    channel = FakeChannel()
    notifier = Notifier(channel)
    booking_id = uuid.uuid4()

    await notifier.notify_booking(db, booking_id, "status_changed", {"status": "confirmed"})
    await drain_after_commit(db)
    await _settle_background_tasks()

    assert channel.published == [
        (
            booking_channel(booking_id),
            {"event": "status_changed", "booking_id": str(booking_id), "status": "confirmed"},
        )
    ]


@pytest.mark.asyncio
async def test_rolled_back_work_is_never_pushed(db: AsyncSession, customer_user: User):
    channel = FakeChannel()
    notifier = Notifier(channel)

    await notifier.notify_user(db, customer_user.id, NotificationType.BOOKING_CREATED, "t", "b")
    discard_after_commit(db)
    await drain_after_commit(db)
    await _settle_background_tasks()

    assert channel.published == []


@pytest.mark.asyncio
async def test_push_failure_is_swallowed(db: AsyncSession, customer_user: User):
    notifier = Notifier(FakeChannel(fail=True))

    await notifier.notify_user(db, customer_user.id, NotificationType.BOOKING_CREATED, "t", "b")
    await drain_after_commit(db)
    await _settle_background_tasks()


@pytest.mark.asyncio
async def test_null_channel_accepts_everything():
    channel = NullChannel()
    await channel.publish("user_x", {"a": 1})
    await channel.close()


@pytest.mark.asyncio
async def test_redis_channel_publishes_json():
    client = AsyncMock()
    with patch("driverhire.services.notifications.aioredis.from_url", return_value=client) as from_url:
        channel = RedisChannel("redis://example:6379/0")
        await channel.publish("booking_1", {"event": "x", "amount": uuid.UUID(int=1)})
        await channel.publish("booking_1", {"event": "y"})
        await channel.close()

    from_url.assert_called_once()
    first_call = client.publish.await_args_list[0]
    assert first_call.args[0] == "booking_1"
    assert json.loads(first_call.args[1]) == {"event": "x", "amount": str(uuid.UUID(int=1))}
    client.aclose.assert_awaited_once()


# --- Routes ---


@pytest.mark.asyncio
async def test_list_notifications(
    client: AsyncClient,
    db: AsyncSession,
    customer_user: User,
    other_customer: User,
    notifier: RecordingNotifier,
):
    for i in range(3):
        await notifier.notify_user(db, customer_user.id, NotificationType.BOOKING_UPDATED, f"n{i}", "body")
    await notifier.notify_user(db, other_customer.id, NotificationType.BOOKING_UPDATED, "other", "body")

    response = await client.get("/notifications", headers=auth_for(customer_user))
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["unread_count"] == 3
    assert {item["title"] for item in data["items"]} == {"n0", "n1", "n2"}


@pytest.mark.asyncio
async def test_mark_notification_read(
    client: AsyncClient,
    db: AsyncSession,
    customer_user: User,
    notifier: RecordingNotifier,
):
    first = await notifier.notify_user(db, customer_user.id, NotificationType.PAYMENT_VERIFIED, "a", "b")
    await notifier.notify_user(db, customer_user.id, NotificationType.PAYMENT_VERIFIED, "c", "d")

    response = await client.patch(f"/notifications/{first.id}/read", headers=auth_for(customer_user))
    assert response.status_code == 200
    assert response.json()["is_read"] is True

    unread = await client.get("/notifications?unread_only=true", headers=auth_for(customer_user))
    assert unread.json()["total"] == 1
    assert unread.json()["unread_count"] == 1
    assert unread.json()["items"][0]["title"] == "c"


@pytest.mark.asyncio
async def test_mark_other_users_notification(
    client: AsyncClient,
    db: AsyncSession,
    customer_user: User,
    other_customer: User,
    notifier: RecordingNotifier,
):
    theirs = await notifier.notify_user(db, other_customer.id, NotificationType.BOOKING_UPDATED, "x", "y")

    response = await client.patch(f"/notifications/{theirs.id}/read", headers=auth_for(customer_user))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_mark_all_read(
    client: AsyncClient,
    db: AsyncSession,
    customer_user: User,
    notifier: RecordingNotifier,
):
    for i in range(2):
        await notifier.notify_user(db, customer_user.id, NotificationType.BOOKING_UPDATED, f"n{i}", "body")

    response = await client.patch("/notifications/read-all", headers=auth_for(customer_user))
    assert response.status_code == 200
    assert response.json()["updated"] == 2

    listing = await client.get("/notifications", headers=auth_for(customer_user))
    assert listing.json()["unread_count"] == 0


@pytest.mark.asyncio
async def test_notifications_require_auth(client: AsyncClient):
    response = await client.get("/notifications")
    assert response.status_code == 401
