"""Seed script for local development.

Creates baseline data:
- 1 admin
- 2 drivers (one verified, one awaiting verification)
- 2 customers

Idempotent: existing users and profiles are left alone. Prints an access
token per user so the API can be exercised without the identity provider.
Run with: python seed.py
"""

import asyncio
import sys
import uuid
from decimal import Decimal

from driverhire.config import settings

# Guard: prevent running on production
if settings.is_production:
    print("ERROR: Cannot seed a production database.")
    sys.exit(1)

from sqlalchemy import select

from driverhire.auth.service import create_access_token
from driverhire.database import async_session
from driverhire.models.driver_profile import DriverProfile
from driverhire.models.enums import DriverVerificationStatus, UserRole
from driverhire.models.user import User

SEED_USERS = [
    {"email": "admin@driverhire.dev", "role": UserRole.ADMIN, "full_name": "Admin", "phone": "+620000000000"},
    {"email": "driver1@driverhire.dev", "role": UserRole.DRIVER, "full_name": "Budi Santoso", "phone": "+620000000001"},
    {"email": "driver2@driverhire.dev", "role": UserRole.DRIVER, "full_name": "Agus Wijaya", "phone": "+620000000002"},
    {"email": "customer1@driverhire.dev", "role": UserRole.CUSTOMER, "full_name": "Siti Rahma", "phone": "+620000000003"},
    {"email": "customer2@driverhire.dev", "role": UserRole.CUSTOMER, "full_name": "Dewi Lestari", "phone": "+620000000004"},
]

DRIVER_PROFILES = [
    {
        "email": "driver1@driverhire.dev",
        "vehicle_brand": "Toyota Avanza",
        "vehicle_type": "MPV",
        "vehicle_plate": "B 1234 XYZ",
        "city": "Jakarta",
        "seat_capacity": 6,
        "price_per_day": Decimal("500000"),
        "verification_status": DriverVerificationStatus.VERIFIED,
    },
    {
        "email": "driver2@driverhire.dev",
        "vehicle_brand": "Mitsubishi L300",
        "vehicle_type": "Pickup",
        "vehicle_plate": "D 5678 ABC",
        "city": "Bandung",
        "seat_capacity": 2,
        "price_per_day": Decimal("650000"),
        "verification_status": DriverVerificationStatus.PENDING,
    },
]


async def seed() -> None:
    async with async_session() as db:
        user_map: dict[str, User] = {}

        for user_data in SEED_USERS:
            result = await db.execute(select(User).where(User.email == user_data["email"]))
            existing = result.scalar_one_or_none()
            if existing:
                print(f"  [skip] User {user_data['email']} already exists")
                user_map[user_data["email"]] = existing
                continue

            user = User(
                id=uuid.uuid4(),
                email=user_data["email"],
                role=user_data["role"].value,
                full_name=user_data["full_name"],
                phone=user_data["phone"],
            )
            db.add(user)
            await db.flush()
            user_map[user_data["email"]] = user
            print(f"  [created] User {user_data['email']} ({user_data['role'].value})")

        for profile_data in DRIVER_PROFILES:
            user = user_map[profile_data["email"]]
            result = await db.execute(select(DriverProfile).where(DriverProfile.user_id == user.id))
            if result.scalar_one_or_none():
                print(f"  [skip] Driver profile for {profile_data['email']} already exists")
                continue

            db.add(
                DriverProfile(
                    id=uuid.uuid4(),
                    user_id=user.id,
                    vehicle_brand=profile_data["vehicle_brand"],
                    vehicle_type=profile_data["vehicle_type"],
                    vehicle_plate=profile_data["vehicle_plate"],
                    city=profile_data["city"],
                    seat_capacity=profile_data["seat_capacity"],
                    price_per_day=profile_data["price_per_day"],
                    verification_status=profile_data["verification_status"].value,
                )
            )
            await db.flush()
            print(f"  [created] Driver profile for {profile_data['email']}")

        await db.commit()

    print("\nAccess tokens:")
    for email, user in user_map.items():
        print(f"  {email}: {create_access_token(str(user.id), user.role)}")
    print("\nSeed completed successfully.")


if __name__ == "__main__":
    print("Seeding DriverHire database...")
    asyncio.run(seed())
