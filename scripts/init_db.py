"""Script to create the identity tables (local development)."""

import asyncio

from auth_service.database import engine
from auth_service.models import metadata


async def init_db() -> None:
    """Create the app_user and user_profile tables if missing."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    await engine.dispose()
    print("✓ Identity tables created")


if __name__ == "__main__":
    asyncio.run(init_db())
