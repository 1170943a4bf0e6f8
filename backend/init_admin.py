"""
Script to create (or promote) the first admin from configuration
"""
import asyncio

from marketplace.core.config import settings
from marketplace.database import AsyncSessionLocal
from marketplace.services.users import ensure_admin


async def init_admin():
    """Create initial admin from FIRST_ADMIN_EMAIL / FIRST_ADMIN_PASSWORD"""
    async with AsyncSessionLocal() as db:
        user, created = await ensure_admin(db, settings.FIRST_ADMIN_EMAIL, settings.FIRST_ADMIN_PASSWORD)

    if created:
        print(f"✓ Created admin: {user.email}")
        print("\n⚠️  IMPORTANT: Change these credentials in production!")
    else:
        print(f"✓ {user.email} already exists, role set to admin")


if __name__ == "__main__":
    asyncio.run(init_admin())
