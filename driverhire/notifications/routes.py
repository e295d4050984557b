import uuid

import structlog
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from driverhire.database import get_db
from driverhire.dependencies import get_current_user
from driverhire.errors import NotificationNotFound
from driverhire.models.notification import Notification
from driverhire.models.user import User
from driverhire.schemas.notification import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from driverhire.utils.rate_limit import LIST_RATE_LIMIT, limiter

logger = structlog.get_logger()
router = APIRouter()


@router.get("", response_model=NotificationListResponse)
@limiter.limit(LIST_RATE_LIMIT)
async def list_notifications(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    unread_only: bool = Query(False),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0, le=10000),
):
    """List notifications for the current user with unread count."""
    filters = [Notification.user_id == user.id]
    if unread_only:
        filters.append(Notification.is_read == False)  # noqa: E712

    result = await db.execute(
        select(Notification)
        .where(*filters)
        .order_by(Notification.created_at.desc(), Notification.id)
        .limit(limit)
        .offset(offset)
    )
    notifications = result.scalars().all()

    total = await db.scalar(select(func.count()).select_from(Notification).where(*filters))
    unread_count = await db.scalar(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user.id, Notification.is_read == False)  # noqa: E712
    )

    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in notifications],
        unread_count=unread_count or 0,
        total=total or 0,
        limit=limit,
        offset=offset,
    )


@router.patch("/read-all", response_model=MarkAllReadResponse)
@limiter.limit("60/minute")
async def mark_all_read(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark all unread notifications as read for the current user."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user.id, Notification.is_read == False)  # noqa: E712
        .values(is_read=True)
    )
    await db.flush()

    logger.info("notifications_all_marked_read", updated=result.rowcount)
    return MarkAllReadResponse(updated=result.rowcount or 0)


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
@limiter.limit("60/minute")
async def mark_notification_read(
    request: Request,
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark a single notification as read."""
    # Filter by owner too so other users' notifications look nonexistent
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id,
            Notification.user_id == user.id,
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotificationNotFound()

    notification.is_read = True
    await db.flush()

    logger.info("notification_marked_read", notification_id=str(notification_id))
    return NotificationResponse.model_validate(notification)
