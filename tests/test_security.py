"""Tests for session token issuing and validation."""

import time
from datetime import UTC, datetime, timedelta
from unittest.mock import patch
from uuid import uuid4

import pytest
from jose import jwt
from pydantic import ValidationError

from auth_service.config import Settings
from auth_service.core.exceptions import TokenInvalidException
from auth_service.core.security import SessionTokenIssuer
from auth_service.schemas.users import Identity, IdentityProvider, Role
from tests.conftest import TEST_SECRET


class FakeClock:
    def __init__(self, now: float | None = None):
        self.now = now if now is not None else time.time()

    def __call__(self) -> float:
        return self.now


def make_identity(**overrides) -> Identity:
    now = datetime.now(UTC)
    values = {
        "id": 10,
        "user_id": uuid4(),
        "email": "alice@example.com",
        "name": "Alice Wonder",
        "given_name": "Alice",
        "family_name": "Wonder",
        "picture": "https://example.com/alice.jpg",
        "role": Role.USER,
        "identity_provider": IdentityProvider.LOCAL,
        "is_active": True,
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    return Identity(**values)


def make_issuer(clock=time.time, access=timedelta(minutes=15), refresh=timedelta(days=7)):
    return SessionTokenIssuer(TEST_SECRET, access_ttl=access, refresh_ttl=refresh, clock=clock)


def tamper_signature(token: str) -> str:
    header, payload, signature = token.split(".")
    index = len(signature) // 2
    replacement = "A" if signature[index] != "A" else "B"
    return ".".join([header, payload, signature[:index] + replacement + signature[index + 1 :]])


def test_issued_token_carries_identity_claims(token_issuer):
    identity = make_identity(role=Role.FLEET_MANAGER)

    claims = jwt.decode(token_issuer.issue(identity), TEST_SECRET, algorithms=["HS256"])

    assert claims["sub"] == "alice@example.com"
    assert claims["userId"] == str(identity.user_id)
    assert claims["roles"] == ["ROLE_FLEET_MANAGER"]
    assert claims["givenName"] == "Alice"
    assert claims["familyName"] == "Wonder"
    assert claims["picture"] == "https://example.com/alice.jpg"
    assert claims["type"] == "access"
    assert isinstance(claims["iat"], int)
    assert claims["exp"] - claims["iat"] == 15 * 60


def test_token_validates_for_its_subject(token_issuer):
    identity = make_identity()
    token = token_issuer.issue(identity)

    assert token_issuer.validate(token, identity.email) is True
    assert token_issuer.extract_subject(token) == identity.email
    assert token_issuer.extract_claim(token, "givenName") == "Alice"


def test_token_rejected_for_other_subject(token_issuer):
    token = token_issuer.issue(make_identity())

    assert token_issuer.validate(token, "mallory@example.com") is False


def test_tampered_signature_is_invalid(token_issuer):
    identity = make_identity()
    token = tamper_signature(token_issuer.issue(identity))

    assert token_issuer.validate(token, identity.email) is False
    with pytest.raises(TokenInvalidException):
        token_issuer.extract_claim(token, "sub")


def test_token_signed_with_other_key_is_invalid(token_issuer):
    identity = make_identity()
    forged = make_issuer().issue(identity)
    other = SessionTokenIssuer(
        "another-secret", access_ttl=timedelta(minutes=1), refresh_ttl=timedelta(minutes=2)
    )

    assert token_issuer.validate(forged, identity.email) is True
    assert other.validate(forged, identity.email) is False


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c"])
def test_garbage_token_is_invalid(token_issuer, token):
    assert token_issuer.validate(token, "alice@example.com") is False


def test_token_invalid_once_expiry_passes():
    clock = FakeClock()
    issuer = make_issuer(clock=clock, access=timedelta(seconds=60), refresh=timedelta(seconds=120))
    identity = make_identity()
    token = issuer.issue(identity)

    clock.now += 59
    assert issuer.validate(token, identity.email) is True

    clock.now += 1
    assert issuer.validate(token, identity.email) is False


def test_token_expired_by_wall_clock_is_invalid():
    """A token whose expiry is already in the past never validates."""
    issuer = make_issuer(clock=FakeClock(time.time() - 3600))
    identity = make_identity()
    token = issuer.issue(identity)

    assert make_issuer().validate(token, identity.email) is False


def test_expired_and_malformed_tokens_are_logged_differently():
    clock = FakeClock(time.time() - 3600)
    identity = make_identity()
    expired = make_issuer(clock=clock).issue(identity)
    issuer = make_issuer()

    with patch("auth_service.core.security.logger") as logger:
        assert issuer.validate(expired, identity.email) is False
        logger.info.assert_called_with("token_expired")
        logger.warning.assert_not_called()

    with patch("auth_service.core.security.logger") as logger:
        assert issuer.validate(tamper_signature(issuer.issue(identity)), identity.email) is False
        assert logger.warning.call_args.args[0] == "token_malformed"


def test_refresh_token_outlives_access_token_issued_at_same_instant():
    issuer = make_issuer(clock=FakeClock())
    identity = make_identity()

    access_exp = issuer.extract_claim(issuer.issue(identity), "exp")
    refresh_exp = issuer.extract_claim(issuer.issue_refresh(identity), "exp")

    assert refresh_exp > access_exp
    assert issuer.extract_claim(issuer.issue_refresh(identity), "type") == "refresh"


def test_validate_rejects_refresh_token(token_issuer):
    identity = make_identity()
    refresh = token_issuer.issue_refresh(identity)

    assert token_issuer.validate(refresh, identity.email) is False
    assert token_issuer.validate(refresh, identity.email, token_type="refresh") is True
    with pytest.raises(TokenInvalidException):
        token_issuer.extract_subject(refresh, token_type="access")


def test_decode_enforces_token_type(token_issuer):
    access = token_issuer.issue(make_identity())

    with pytest.raises(TokenInvalidException):
        token_issuer.decode(access, token_type="refresh")


@pytest.mark.parametrize(
    "access,refresh",
    [
        (timedelta(minutes=10), timedelta(minutes=10)),
        (timedelta(minutes=10), timedelta(minutes=5)),
    ],
)
def test_refresh_ttl_must_exceed_access_ttl(access, refresh):
    with pytest.raises(ValueError):
        SessionTokenIssuer(TEST_SECRET, access_ttl=access, refresh_ttl=refresh)


def test_settings_reject_refresh_ttl_not_above_access_ttl():
    with pytest.raises(ValidationError):
        Settings(
            DATABASE_URL="sqlite+aiosqlite:///:memory:",
            JWT_SECRET_KEY=TEST_SECRET,
            ACCESS_TOKEN_EXPIRE_MINUTES=60,
            REFRESH_TOKEN_EXPIRE_MINUTES=60,
        )


def test_issuer_from_settings_uses_configured_lifetimes():
    settings = Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        JWT_SECRET_KEY=TEST_SECRET,
        ACCESS_TOKEN_EXPIRE_MINUTES=30,
        REFRESH_TOKEN_EXPIRE_MINUTES=600,
    )

    issuer = SessionTokenIssuer.from_settings(settings)

    assert issuer.access_ttl == timedelta(minutes=30)
    assert issuer.refresh_ttl == timedelta(minutes=600)
