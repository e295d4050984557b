"""Create an admin user in the DriverHire database.

Usage:
    python scripts/create_admin.py admin@example.com "Full Name"
"""

import asyncio
import sys

from sqlalchemy import select

from driverhire.auth.service import create_access_token
from driverhire.database import async_session
from driverhire.models.enums import UserRole
from driverhire.models.user import User


async def create_admin(email: str, full_name: str) -> None:
    """Create an admin user and print a short-lived access token for it."""
    async with async_session() as db:
        result = await db.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            print(f"Error: User with email '{email}' already exists.")
            sys.exit(1)

        user = User(email=email, full_name=full_name, role=UserRole.ADMIN.value)
        db.add(user)
        await db.commit()

        print(f"Admin user created successfully: {email} (id={user.id})")
        print(f"Access token: {create_access_token(str(user.id), user.role)}")


def main() -> None:
    if len(sys.argv) != 3:
        print('Usage: python scripts/create_admin.py <email> "<full name>"')
        sys.exit(1)

    asyncio.run(create_admin(sys.argv[1], sys.argv[2]))


if __name__ == "__main__":
    main()
