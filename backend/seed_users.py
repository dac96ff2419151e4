"""
Database seeding script for initial users.

Creates one ADMIN, one DELIVERY_AGENT and one CUSTOMER for development.
Run this script after the database is set up but before first use.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.user import User
from backend.app.models.parcel import Parcel  # noqa: F401 (registers the table)
from backend.app.models.location import Location  # noqa: F401
from backend.app.models.audit_log import AuditLog  # noqa: F401
from backend.app.models.enums import UserRole
from backend.app.core.security import get_password_hash
from sqlalchemy import select

SEED_USERS = [
    ("Admin", "admin@courier.com", "admin123", UserRole.ADMIN),
    ("Demo Agent", "agent@courier.com", "agent123", UserRole.DELIVERY_AGENT),
    ("Demo Customer", "customer@courier.com", "customer123", UserRole.CUSTOMER),
]


async def seed_users():
    """
    Seed initial users with different roles.

    Admins cannot register through the API, so this is the way to get the
    first one. Existing emails are skipped.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting user seeding...")

        for name, email, password, role in SEED_USERS:
            result = await db.execute(select(User).where(User.email == email))
            if result.scalar_one_or_none():
                print(f"ℹ️  {email} already exists, skipping")
                continue

            db.add(User(
                name=name,
                email=email,
                hashed_password=get_password_hash(password),
                role=role,
                is_active=True
            ))
            print(f"✅ Created {role.value} user ({email} / {password})")

        await db.commit()

    print("\n🎉 User seeding completed successfully!")
    print("Note: customers and delivery agents can also register via POST /v1/auth/register")


if __name__ == "__main__":
    asyncio.run(seed_users())
