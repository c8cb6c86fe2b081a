"""Authentication service: external sign-in and session tokens."""

from collections.abc import Awaitable, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from auth_service.core.exceptions import TokenInvalidException
from auth_service.core.security import REFRESH_TOKEN_TYPE, SessionTokenIssuer
from auth_service.schemas.auth import AuthResponse, ExternalClaims, Token
from auth_service.schemas.users import Identity, Role, UserInfo
from auth_service.services.event_publisher import UserEventPublisher
from auth_service.services.user_service import UserService

logger = structlog.get_logger(__name__)

ClaimsVerifier = Callable[[str], Awaitable[ExternalClaims]]


class AuthService:
    """Authentication service for handling external sign-in and session tokens."""

    def __init__(
        self,
        db: AsyncSession,
        verify_claims: ClaimsVerifier,
        token_issuer: SessionTokenIssuer,
        event_publisher: UserEventPublisher,
    ):
        """Initialize auth service with its collaborators."""
        self.users = UserService(db)
        self.verify_claims = verify_claims
        self.tokens = token_issuer
        self.events = event_publisher

    async def sign_in_with_google(
        self, id_token: str, requested_role: Role | None = None
    ) -> AuthResponse:
        """
        Verify an identity token, reconcile the identity and issue session tokens.

        Args:
            id_token: Identity token from the provider
            requested_role: Role hint for first sign-in

        Returns:
            Session tokens, profile setup flag and user info

        Raises:
            InvalidAssertionException: If the token is invalid or has no email
            StorageException: If the database is unavailable
        """
        claims = await self.verify_claims(id_token)
        identity, created = await self.users.reconcile(claims, requested_role)

        # The identity is committed at this point; publishing never raises
        if created:
            await self.events.publish_user_created(identity)

        profile = await self.users.get_profile(identity.id)
        tokens = self.create_tokens(identity)

        logger.info(
            "sign_in_completed",
            user_id=str(identity.user_id),
            created=created,
            requires_profile_setup=profile is None,
        )

        return AuthResponse(
            token=tokens.token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            requires_profile_setup=profile is None,
            user_info=UserInfo.from_records(identity, profile),
        )

    def create_tokens(self, identity: Identity) -> Token:
        """
        Create access and refresh tokens for an identity.

        Args:
            identity: Identity the tokens are issued for

        Returns:
            Token pair (access and refresh)
        """
        return Token(
            token=self.tokens.issue(identity),
            refresh_token=self.tokens.issue_refresh(identity),
            token_type="bearer",
        )

    async def refresh_access_token(self, refresh_token: str) -> Token:
        """
        Create a new token pair from a refresh token.

        Args:
            refresh_token: Valid refresh token

        Returns:
            New token pair

        Raises:
            TokenInvalidException: If the refresh token is invalid or its user is gone
        """
        claims = self.tokens.decode(refresh_token, token_type=REFRESH_TOKEN_TYPE)

        email = claims.get("sub")
        if not isinstance(email, str) or not email:
            raise TokenInvalidException("Invalid refresh token")

        identity = await self.users.get_by_email(email)
        if identity is None or not identity.is_active:
            raise TokenInvalidException("Invalid refresh token")

        return self.create_tokens(identity)
