"""
Seed script: creates a default administrator only.

Usage (inside container):
    python -m dutytrack.db.seed
"""

import asyncio

from sqlalchemy import select

from dutytrack.core.roles import normalize_company_key
from dutytrack.core.security import hash_password
from dutytrack.db.models import User
from dutytrack.db.session import AsyncSessionLocal

_ADMIN_EMAIL = "admin@dutytrack.local"
_ADMIN_COMPANY = "DutyTrack"


async def create_admin(session) -> User:
    result = await session.execute(select(User).where(User.email == _ADMIN_EMAIL))
    admin = result.scalar_one_or_none()
    if admin:
        print("Admin user already exists, skipping.")
        return admin

    admin = User(
        email=_ADMIN_EMAIL,
        password_hash=hash_password("admin123"),
        role="admin",
        full_name="System Administrator",
        company_name=_ADMIN_COMPANY,
        company_key=normalize_company_key(_ADMIN_COMPANY),
        is_active=True,
    )
    session.add(admin)
    await session.flush()
    print(f"Created admin user: id={admin.id}")
    return admin


async def main():
    async with AsyncSessionLocal() as session:
        async with session.begin():
            await create_admin(session)
            print("Seed complete. Admin user only.")


if __name__ == "__main__":
    asyncio.run(main())
