import uuid

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from driverhire.auth.service import decode_access_token
from driverhire.database import get_db
from driverhire.errors import Forbidden, Unauthenticated
from driverhire.models.driver_profile import DriverProfile
from driverhire.models.enums import UserRole
from driverhire.models.user import User

logger = structlog.get_logger()
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the bearer token issued by the identity provider to a ``User`` row."""
    if credentials is None:
        raise Unauthenticated("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise Unauthenticated()

    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise Unauthenticated()

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise Unauthenticated("User not found")

    if not user.is_active:
        raise Forbidden("Account has been deactivated. Contact support for more information.")

    # The role claim is informational; the stored role is authoritative.
    if payload.get("role") and payload["role"] != user.role:
        logger.warning("token_role_mismatch", user_id=str(user.id), claimed=payload["role"])

    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return user


async def get_current_customer(
    user: User = Depends(get_current_user),
) -> User:
    """Get current user and verify they are a customer."""
    if user.role != UserRole.CUSTOMER:
        raise Forbidden("Only customers can access this resource")
    return user


async def get_current_driver(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> tuple[User, DriverProfile]:
    """Get current user and verify they are a driver with a profile."""
    if user.role != UserRole.DRIVER:
        raise Forbidden("Only drivers can access this resource")

    result = await db.execute(
        select(DriverProfile).where(DriverProfile.user_id == user.id)
    )
    profile = result.scalar_one_or_none()
    if profile is None:
        raise Forbidden("Driver profile not found")
    return user, profile


async def get_current_admin(
    user: User = Depends(get_current_user),
) -> User:
    """Get current user and verify they are an admin."""
    if user.role != UserRole.ADMIN:
        raise Forbidden("Admin access required")
    return user
