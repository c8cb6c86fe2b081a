"""Data-access layer for identities and profiles."""

from typing import Any

from sqlalchemy import exists, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auth_service.models.user_profiles import user_profiles
from auth_service.models.users import users
from auth_service.schemas.users import Identity, Profile


class UserRepository:
    """Data-access layer for identity records."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def find_by_email(self, email: str) -> Identity | None:
        result = await self._db.execute(select(users).where(users.c.email == email))
        row = result.mappings().first()
        return Identity.model_validate(dict(row)) if row else None

    async def find_by_id(self, identity_id: int) -> Identity | None:
        result = await self._db.execute(select(users).where(users.c.id == identity_id))
        row = result.mappings().first()
        return Identity.model_validate(dict(row)) if row else None

    async def exists_by_email(self, email: str) -> bool:
        result = await self._db.execute(select(exists().where(users.c.email == email)))
        return bool(result.scalar())

    async def insert(self, values: dict[str, Any]) -> Identity:
        result = await self._db.execute(insert(users).values(**values).returning(users))
        return Identity.model_validate(dict(result.mappings().one()))

    async def update(self, identity_id: int, values: dict[str, Any]) -> Identity:
        result = await self._db.execute(
            update(users).where(users.c.id == identity_id).values(**values).returning(users)
        )
        return Identity.model_validate(dict(result.mappings().one()))


class ProfileRepository:
    """Data-access layer for profile records."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def find_by_id(self, identity_id: int) -> Profile | None:
        result = await self._db.execute(
            select(user_profiles).where(user_profiles.c.id == identity_id)
        )
        row = result.mappings().first()
        return Profile.model_validate(dict(row)) if row else None

    async def insert(self, values: dict[str, Any]) -> Profile:
        result = await self._db.execute(
            insert(user_profiles).values(**values).returning(user_profiles)
        )
        return Profile.model_validate(dict(result.mappings().one()))

    async def update(self, identity_id: int, values: dict[str, Any]) -> Profile:
        result = await self._db.execute(
            update(user_profiles)
            .where(user_profiles.c.id == identity_id)
            .values(**values)
            .returning(user_profiles)
        )
        return Profile.model_validate(dict(result.mappings().one()))
