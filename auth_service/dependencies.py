"""FastAPI dependencies."""

from collections.abc import Awaitable, Callable
from functools import lru_cache
from typing import Annotated

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from auth_service.config import settings
from auth_service.core.exceptions import ForbiddenException, TokenInvalidException
from auth_service.core.firebase import verify_firebase_token
from auth_service.core.rabbitmq import get_broker
from auth_service.core.security import ACCESS_TOKEN_TYPE, SessionTokenIssuer
from auth_service.database import get_db
from auth_service.schemas.users import Identity, Role
from auth_service.services.auth_service import AuthService, ClaimsVerifier
from auth_service.services.event_publisher import UserEventPublisher
from auth_service.services.user_service import UserService

# Security
security = HTTPBearer(auto_error=False)


@lru_cache
def get_token_issuer() -> SessionTokenIssuer:
    """Get the session token issuer built from settings."""
    return SessionTokenIssuer.from_settings(settings)


def get_event_publisher() -> UserEventPublisher:
    """Get a user event publisher bound to the shared broker."""
    return UserEventPublisher.from_settings(get_broker(), settings)


def get_claims_verifier() -> ClaimsVerifier:
    """Get the identity token verifier."""
    return verify_firebase_token


DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
TokenIssuer = Annotated[SessionTokenIssuer, Depends(get_token_issuer)]


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: DatabaseSession,
    token_issuer: TokenIssuer,
) -> Identity:
    """
    Resolve the identity behind a bearer access token.

    Only access tokens are accepted. The token subject is looked up by
    email and the token is then validated against that identity.

    Raises:
        TokenInvalidException: If the token is missing, invalid or its identity is unknown
        ForbiddenException: If the identity is deactivated
    """
    if credentials is None:
        raise TokenInvalidException("Not authenticated")

    token = credentials.credentials
    email = token_issuer.extract_subject(token, token_type=ACCESS_TOKEN_TYPE)

    identity = await UserService(db).get_by_email(email)
    if identity is None or not token_issuer.validate(token, identity.email):
        raise TokenInvalidException("Could not validate credentials")

    if not identity.is_active:
        raise ForbiddenException("User account is deactivated")

    structlog.contextvars.bind_contextvars(
        user_id=str(identity.user_id),
        user_email=identity.email,
        user_role=identity.role.value,
    )

    return identity


CurrentUser = Annotated[Identity, Depends(get_current_user)]


def require_roles(*roles: Role) -> Callable[[Identity], Awaitable[Identity]]:
    """Dependency factory that admits identities holding any of the roles."""
    required = {role.authority for role in roles}

    async def check_roles(current_user: CurrentUser) -> Identity:
        if required.isdisjoint(current_user.authorities):
            raise ForbiddenException("Insufficient role")
        return current_user

    return check_roles


def get_auth_service(
    db: DatabaseSession,
    token_issuer: TokenIssuer,
    event_publisher: Annotated[UserEventPublisher, Depends(get_event_publisher)],
    verify_claims: Annotated[ClaimsVerifier, Depends(get_claims_verifier)],
) -> AuthService:
    """Build the authentication service for a request."""
    return AuthService(db, verify_claims, token_issuer, event_publisher)


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
