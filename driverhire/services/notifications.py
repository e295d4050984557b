"""Lifecycle notifications: persisted inbox rows plus best-effort real-time pushes.

Pushes go to ``user_<id>`` or ``booking_<id>`` channels and are only published
after the request transaction commits. Delivery is at-most-once: a failed
push is logged and dropped.
"""
import asyncio
import json
import uuid
from typing import Protocol, Set

import redis.asyncio as aioredis
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from driverhire.config import settings
from driverhire.database import run_after_commit
from driverhire.models.enums import NotificationType
from driverhire.models.notification import Notification

logger = structlog.get_logger()

# Keep references to background tasks to prevent GC collection
_background_tasks: Set[asyncio.Task] = set()


def user_channel(user_id: uuid.UUID | str) -> str:
    return f"user_{user_id}"


def booking_channel(booking_id: uuid.UUID | str) -> str:
    return f"booking_{booking_id}"


class RealtimeChannel(Protocol):
    async def publish(self, channel: str, message: dict) -> None: ...

    async def close(self) -> None: ...


class RedisChannel:
    """Publishes JSON messages over Redis pub/sub."""

    def __init__(self, url: str):
        self._url = url
        self._client: aioredis.Redis | None = None

    def _get_client(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.from_url(
                self._url, socket_connect_timeout=2, decode_responses=True
            )
        return self._client

    async def publish(self, channel: str, message: dict) -> None:
        await self._get_client().publish(channel, json.dumps(message, default=str))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class NullChannel:
    async def publish(self, channel: str, message: dict) -> None:
        logger.debug("realtime_push_disabled", channel=channel)

    async def close(self) -> None:
        return None


class Notifier:
    """Notification sink handed to every lifecycle operation."""

    def __init__(self, channel: RealtimeChannel):
        self.channel = channel

    async def notify_user(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        notification_type: NotificationType | str,
        title: str,
        body: str,
        data: dict | None = None,
    ) -> Notification:
        """Persist an inbox entry in the caller's transaction and queue a push to the user."""
        type_value = NotificationType(notification_type).value
        push_data = dict(data) if data else {}
        push_data.setdefault("type", type_value)

        notification = Notification(
            user_id=user_id,
            type=type_value,
            title=title,
            body=body,
            data=push_data,
        )
        db.add(notification)
        await db.flush()

        message = {
            "id": str(notification.id),
            "type": type_value,
            "title": title,
            "body": body,
            "data": push_data,
        }
        self._after_commit(db, user_channel(user_id), message)
        return notification

    async def notify_booking(
        self,
        db: AsyncSession,
        booking_id: uuid.UUID,
        event: str,
        payload: dict | None = None,
    ) -> None:
        """Queue a push to everyone subscribed to the booking."""
        message = {"event": event, "booking_id": str(booking_id), **(payload or {})}
        self._after_commit(db, booking_channel(booking_id), message)

    def _after_commit(self, db: AsyncSession, channel: str, message: dict) -> None:
        async def _dispatch() -> None:
            task = asyncio.create_task(self._publish(channel, message))
            _background_tasks.add(task)
            task.add_done_callback(_background_tasks.discard)

        run_after_commit(db, _dispatch)

    async def _publish(self, channel: str, message: dict) -> None:
        try:
            await self.channel.publish(channel, message)
        except Exception as exc:
            logger.warning("realtime_push_failed", channel=channel, error=str(exc))
            return
        logger.info("realtime_push_sent", channel=channel)


def _build_channel() -> RealtimeChannel:
    if settings.REALTIME_PUSH_ENABLED and settings.REDIS_URL:
        return RedisChannel(settings.REDIS_URL)
    return NullChannel()


_notifier = Notifier(_build_channel())


def get_notifier() -> Notifier:
    """FastAPI dependency returning the process notifier. Overridden in tests."""
    return _notifier
