"""
Script to initialize the database with all tables.
This bypasses Alembic and uses SQLAlchemy's create_all() method.
"""
import asyncio
import sys

from marketplace.database import engine, Base
import marketplace.models  # noqa: F401  registers tables on Base.metadata


async def init_db(drop: bool = False):
    """Create all tables in the database"""
    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()

    print("✓ Database initialized successfully!")
    print(f"✓ Tables: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    asyncio.run(init_db(drop="--drop" in sys.argv))
