"""Script to initialize the database without running migrations."""

import asyncio

from sqlalchemy import text

from recipebox.database import engine
from recipebox.models import metadata


async def init_db() -> None:
    """Create the users and favorites tables if they are missing."""
    async with engine.begin() as conn:
        if engine.dialect.name == "postgresql":
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))

        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Database initialized successfully!")


if __name__ == "__main__":
    asyncio.run(init_db())
