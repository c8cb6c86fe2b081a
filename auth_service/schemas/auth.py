"""Authentication schemas."""

from pydantic import BaseModel, Field

from auth_service.schemas.users import CamelModel, IdentityProvider, Role, UserInfo


class ExternalClaims(BaseModel):
    """Verified claims extracted from a third-party identity token."""

    subject: str
    email: str | None = None
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    picture: str | None = None
    provider: IdentityProvider = IdentityProvider.GOOGLE


class GoogleAuthRequest(CamelModel):
    """Optional body of the Google sign-in request."""

    requested_role: Role | None = Field(
        default=None,
        description="Role hint, honored only when the identity does not exist yet",
    )


class Token(CamelModel):
    """JWT token pair response schema."""

    token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(CamelModel):
    """Token refresh request schema."""

    refresh_token: str


class AuthResponse(CamelModel):
    """Sign-in response with session token and user info."""

    token: str
    refresh_token: str
    token_type: str = "bearer"
    requires_profile_setup: bool
    user_info: UserInfo
