"""User schemas for request/response validation."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Role(str, Enum):
    """Authorization role, fixed at identity creation."""

    USER = "USER"
    ADMIN = "ADMIN"
    FLEET_MANAGER = "FLEET_MANAGER"

    @property
    def authority(self) -> str:
        """Namespaced authority string carried in session tokens."""
        return f"ROLE_{self.value}"


class IdentityProvider(str, Enum):
    """Provider that asserted the identity."""

    GOOGLE = "GOOGLE"
    LOCAL = "LOCAL"
    GITHUB = "GITHUB"


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Identity(BaseModel):
    """Identity record as stored in database."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: UUID
    email: str
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None
    google_sub: str | None = None
    role: Role
    identity_provider: IdentityProvider
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @property
    def authorities(self) -> list[str]:
        """Granted authorities for role checks."""
        return [self.role.authority]


class Profile(BaseModel):
    """Profile record as stored in database."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    phone: str | None = None
    date_of_birth: date | None = None
    driving_license_number: str | None = None
    passport_number: str | None = None
    preferred_language: str | None = None
    country_of_residence: str | None = None
    created_at: datetime
    updated_at: datetime


class SignupProfileRequest(CamelModel):
    """Signup/profile submission. Every field is optional; only supplied fields are written."""

    # Optional overrides of the provider-supplied names
    given_name: str | None = None
    family_name: str | None = None

    phone: str | None = Field(None, max_length=32)
    date_of_birth: date | None = None
    driving_license_number: str | None = None
    passport_number: str | None = None
    preferred_language: str | None = None
    country_of_residence: str | None = None

    requested_role: Role | None = None


# Fields of SignupProfileRequest that belong to the profile record
PROFILE_FIELDS = (
    "phone",
    "date_of_birth",
    "driving_license_number",
    "passport_number",
    "preferred_language",
    "country_of_residence",
)


class UserInfo(CamelModel):
    """Identity display fields plus profile fields (nullable)."""

    user_id: UUID
    email: str
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None

    phone: str | None = None
    date_of_birth: date | None = None
    driving_license_number: str | None = None
    passport_number: str | None = None
    preferred_language: str | None = None
    country_of_residence: str | None = None

    @classmethod
    def from_records(cls, identity: Identity, profile: Profile | None) -> "UserInfo":
        """Build from an identity and its optional profile."""
        profile_data = {}
        if profile is not None:
            profile_data = {field: getattr(profile, field) for field in PROFILE_FIELDS}
        return cls(
            user_id=identity.user_id,
            email=identity.email,
            given_name=identity.given_name,
            family_name=identity.family_name,
            picture=identity.picture,
            **profile_data,
        )


class SignupResponse(UserInfo):
    """Signup/profile response."""


class IdentityResponse(CamelModel):
    """Current identity schema for API responses."""

    user_id: UUID
    email: str
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None
    role: Role
    identity_provider: IdentityProvider
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UserExistsResponse(BaseModel):
    """Pre-login existence check response."""

    exists: bool
    email: str
