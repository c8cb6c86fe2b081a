"""Session token issuing and validation."""

import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any

import structlog
from jose import ExpiredSignatureError, JWTError, jwt

from auth_service.config import Settings
from auth_service.core.exceptions import TokenInvalidException
from auth_service.schemas.users import Identity

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class SessionTokenIssuer:
    """Mints and validates locally-signed session tokens."""

    def __init__(
        self,
        secret_key: str,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize issuer with signing key and token lifetimes.

        Args:
            secret_key: HMAC signing secret
            access_ttl: Lifetime of access tokens
            refresh_ttl: Lifetime of refresh tokens, must exceed access_ttl
            algorithm: JWS algorithm
            clock: Source of the current epoch time in seconds

        Raises:
            ValueError: If refresh_ttl does not exceed access_ttl
        """
        if refresh_ttl <= access_ttl:
            raise ValueError("Refresh token lifetime must exceed access token lifetime")

        self._secret_key = secret_key
        self._algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionTokenIssuer":
        """Build an issuer from application settings."""
        return cls(
            secret_key=settings.jwt_secret_key,
            access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_ttl=timedelta(minutes=settings.refresh_token_expire_minutes),
            algorithm=settings.jwt_algorithm,
        )

    def issue(self, identity: Identity) -> str:
        """Create an access token for the identity."""
        return self._build_token(identity, self.access_ttl, ACCESS_TOKEN_TYPE)

    def issue_refresh(self, identity: Identity) -> str:
        """Create a refresh token for the identity."""
        return self._build_token(identity, self.refresh_ttl, REFRESH_TOKEN_TYPE)

    def _build_token(self, identity: Identity, ttl: timedelta, token_type: str) -> str:
        issued_at = int(self._clock())
        claims: dict[str, Any] = {
            "sub": identity.email,
            "userId": str(identity.user_id),
            "roles": identity.authorities,
            "givenName": identity.given_name,
            "familyName": identity.family_name,
            "picture": identity.picture,
            "type": token_type,
            "iat": issued_at,
            "exp": issued_at + int(ttl.total_seconds()),
        }
        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def decode(self, token: str, token_type: str | None = None) -> dict[str, Any]:
        """
        Verify signature and expiry and return the token claims.

        Args:
            token: Encoded session token
            token_type: Required value of the ``type`` claim, if any

        Returns:
            Decoded claims

        Raises:
            TokenInvalidException: If the token is expired, tampered or of the wrong type
        """
        try:
            claims = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
            )
        except ExpiredSignatureError:
            logger.info("token_expired")
            raise TokenInvalidException("Token has expired")
        except JWTError as e:
            logger.warning("token_malformed", error=str(e))
            raise TokenInvalidException("Token could not be verified")

        # jose checks exp against wall-clock time; the issuer's clock is authoritative
        if int(self._clock()) >= claims.get("exp", 0):
            logger.info("token_expired")
            raise TokenInvalidException("Token has expired")

        if token_type is not None and claims.get("type") != token_type:
            logger.warning("token_type_mismatch", expected=token_type, actual=claims.get("type"))
            raise TokenInvalidException("Unexpected token type")

        return claims

    def validate(
        self, token: str, expected_subject: str, token_type: str | None = ACCESS_TOKEN_TYPE
    ) -> bool:
        """
        Check that the token verifies, is unexpired and belongs to the subject.

        Args:
            token: Encoded session token
            expected_subject: Email of the principal the token is checked against
            token_type: Required token type; refresh tokens are not bearer credentials

        Returns:
            True if the token is valid for the subject, False otherwise
        """
        try:
            claims = self.decode(token, token_type=token_type)
        except TokenInvalidException:
            return False

        if claims.get("sub") != expected_subject:
            logger.warning("token_subject_mismatch")
            return False

        return True

    def extract_claim(self, token: str, key: str) -> Any:
        """
        Return a single claim from a verified token.

        Raises:
            TokenInvalidException: If the token does not verify
        """
        return self.decode(token).get(key)

    def extract_subject(self, token: str, token_type: str | None = None) -> str:
        """Return the subject (email) of a verified token, optionally of a given type."""
        subject = self.decode(token, token_type=token_type).get("sub")
        if not isinstance(subject, str) or not subject:
            raise TokenInvalidException("Token has no subject")
        return subject
