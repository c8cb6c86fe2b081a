"""User service: identity reconciliation and profile management."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from auth_service.core.exceptions import (
    InvalidAssertionException,
    NotFoundException,
    StorageException,
)
from auth_service.repositories.users import ProfileRepository, UserRepository
from auth_service.schemas.auth import ExternalClaims
from auth_service.schemas.users import (
    PROFILE_FIELDS,
    Identity,
    Profile,
    Role,
    SignupProfileRequest,
)

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UserService:
    """Service for identity and profile operations."""

    def __init__(self, db: AsyncSession, clock: Callable[[], datetime] = _utcnow):
        """Initialize service with a database session."""
        self._db = db
        self._users = UserRepository(db)
        self._profiles = ProfileRepository(db)
        self._clock = clock

    async def reconcile(
        self, claims: ExternalClaims, requested_role: Role | None = None
    ) -> tuple[Identity, bool]:
        """
        Find or create the identity for verified claims.

        Existing identities only have their supplied mutable fields (name,
        given and family name, picture, provider subject) refreshed; role
        and creation time are never changed. New identities get the
        requested role, or USER when none is given.

        Args:
            claims: Verified claims from the identity provider
            requested_role: Role hint, honored only on creation

        Returns:
            Tuple of (identity, was_created)

        Raises:
            InvalidAssertionException: If the email claim is missing
            StorageException: If the database is unavailable
        """
        email = claims.email
        if not email:
            raise InvalidAssertionException("Email claim is required")

        try:
            existing = await self._users.find_by_email(email)
            if existing is not None:
                identity = await self._apply_claims(existing, claims)
                await self._db.commit()
                return identity, False

            try:
                identity = await self._users.insert(
                    self._new_identity_values(claims, requested_role)
                )
                await self._db.commit()
            except IntegrityError:
                # A concurrent first login for the same email won the insert
                await self._db.rollback()
                return await self._load_race_winner(email), False

        except SQLAlchemyError as e:
            await self._db.rollback()
            logger.error("identity_reconcile_failed", email=email, error=str(e))
            raise StorageException("Identity storage is unavailable")

        logger.info(
            "identity_created",
            user_id=str(identity.user_id),
            email=identity.email,
            role=identity.role.value,
        )
        return identity, True

    def _new_identity_values(
        self, claims: ExternalClaims, requested_role: Role | None
    ) -> dict[str, Any]:
        now = self._clock()
        return {
            "user_id": uuid4(),
            "email": claims.email,
            "name": claims.name,
            "given_name": claims.given_name,
            "family_name": claims.family_name,
            "picture": claims.picture,
            "google_sub": claims.subject or None,
            "role": (requested_role or Role.USER).value,
            "identity_provider": claims.provider.value,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }

    async def _apply_claims(self, identity: Identity, claims: ExternalClaims) -> Identity:
        changes: dict[str, Any] = {}

        # Absent claims never clear stored values (including /signup name overrides)
        for field in ("name", "given_name", "family_name", "picture"):
            value = getattr(claims, field)
            if value is not None and value != getattr(identity, field):
                changes[field] = value

        if claims.subject and claims.subject != identity.google_sub:
            changes["google_sub"] = claims.subject

        if not changes:
            return identity

        changes["updated_at"] = self._clock()
        updated = await self._users.update(identity.id, changes)
        logger.info(
            "identity_updated",
            user_id=str(identity.user_id),
            fields=sorted(k for k in changes if k != "updated_at"),
        )
        return updated

    async def _load_race_winner(self, email: str) -> Identity:
        winner = await self._users.find_by_email(email)
        if winner is None:
            # The violated constraint was not the email (e.g. provider subject)
            logger.error("identity_insert_conflict", email=email)
            raise StorageException("Identity could not be stored")

        logger.info("identity_creation_race_recovered", user_id=str(winner.user_id))
        return winner

    async def upsert_profile(self, identity_id: int, patch: SignupProfileRequest) -> Profile:
        """
        Create or partially update the profile of an identity.

        Non-blank given/family name overrides are applied to the identity
        and the display name is recomposed. Only profile fields present in
        the patch are written; absent fields keep their stored values.

        Args:
            identity_id: Internal identity ID
            patch: Submitted profile fields

        Returns:
            The stored profile

        Raises:
            NotFoundException: If the identity does not exist
            StorageException: If the database is unavailable
        """
        supplied = patch.model_dump(exclude_unset=True)

        try:
            identity = await self._users.find_by_id(identity_id)
            if identity is None:
                raise NotFoundException("User not found")

            now = self._clock()
            await self._apply_name_overrides(identity, supplied, now)

            profile_changes = {k: supplied[k] for k in PROFILE_FIELDS if k in supplied}
            existing = await self._profiles.find_by_id(identity.id)

            if existing is None:
                profile = await self._profiles.insert(
                    {
                        "id": identity.id,
                        **profile_changes,
                        "created_at": now,
                        "updated_at": now,
                    }
                )
            elif profile_changes:
                profile = await self._profiles.update(
                    identity.id, {**profile_changes, "updated_at": now}
                )
            else:
                profile = existing

            await self._db.commit()

        except SQLAlchemyError as e:
            await self._db.rollback()
            logger.error("profile_upsert_failed", identity_id=identity_id, error=str(e))
            raise StorageException("Profile storage is unavailable")

        logger.info(
            "profile_saved",
            user_id=str(identity.user_id),
            created=existing is None,
            fields=sorted(profile_changes),
        )
        return profile

    async def _apply_name_overrides(
        self, identity: Identity, supplied: dict[str, Any], now: datetime
    ) -> None:
        changes: dict[str, Any] = {}
        for field in ("given_name", "family_name"):
            value = supplied.get(field)
            if value and value.strip() and value != getattr(identity, field):
                changes[field] = value

        if not changes:
            return

        given_name = changes.get("given_name", identity.given_name)
        family_name = changes.get("family_name", identity.family_name)
        changes["name"] = " ".join(part for part in (given_name, family_name) if part)
        changes["updated_at"] = now
        await self._users.update(identity.id, changes)

    async def get_by_id(self, identity_id: int) -> Identity | None:
        """Get identity by internal ID."""
        try:
            return await self._users.find_by_id(identity_id)
        except SQLAlchemyError as e:
            logger.error("identity_lookup_failed", error=str(e))
            raise StorageException("Identity storage is unavailable")

    async def get_by_email(self, email: str) -> Identity | None:
        """Get identity by email."""
        try:
            return await self._users.find_by_email(email)
        except SQLAlchemyError as e:
            logger.error("identity_lookup_failed", error=str(e))
            raise StorageException("Identity storage is unavailable")

    async def get_profile(self, identity_id: int) -> Profile | None:
        """Get profile by identity ID."""
        try:
            return await self._profiles.find_by_id(identity_id)
        except SQLAlchemyError as e:
            logger.error("profile_lookup_failed", error=str(e))
            raise StorageException("Profile storage is unavailable")

    async def exists_by_email(self, email: str) -> bool:
        """Check whether an identity exists for the email."""
        try:
            return await self._users.exists_by_email(email)
        except SQLAlchemyError as e:
            logger.error("identity_lookup_failed", error=str(e))
            raise StorageException("Identity storage is unavailable")
