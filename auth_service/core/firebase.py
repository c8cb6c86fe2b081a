"""Firebase Admin SDK initialization and identity token verification."""

import json
import os
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials
from structlog import get_logger

from auth_service.core.exceptions import InvalidAssertionException
from auth_service.schemas.auth import ExternalClaims
from auth_service.schemas.users import IdentityProvider

logger = get_logger(__name__)

_firebase_app: firebase_admin.App | None = None

# firebase.sign_in_provider -> local identity provider tag
SIGN_IN_PROVIDERS = {
    "google.com": IdentityProvider.GOOGLE,
    "github.com": IdentityProvider.GITHUB,
    "password": IdentityProvider.LOCAL,
}


def initialize_firebase(
    firebase_credentials_path: str | None = None,
    firebase_config_json: str | None = None,
    project_id: str | None = None,
) -> None:
    """
    Initialize Firebase Admin SDK.

    Looks for Firebase credentials in order:
    1. Raw service account JSON string
    2. Service account JSON file path
    3. Default application credentials

    Args:
        firebase_credentials_path: Optional path to service account JSON file.
        firebase_config_json: Optional raw JSON string of service account.
        project_id: Optional project ID, used for token audience checks.
    """
    global _firebase_app

    if _firebase_app is not None:
        logger.info("Firebase already initialized")
        return

    options = {"projectId": project_id} if project_id else None

    try:
        cred = None

        if firebase_config_json:
            logger.info("Initializing Firebase with JSON string from environment")
            cred = credentials.Certificate(json.loads(firebase_config_json))
        elif firebase_credentials_path and os.path.exists(firebase_credentials_path):
            logger.info("Initializing Firebase with JSON file", path=firebase_credentials_path)
            cred = credentials.Certificate(firebase_credentials_path)

        if cred:
            _firebase_app = firebase_admin.initialize_app(cred, options)
        else:
            _firebase_app = firebase_admin.initialize_app(options=options)
            logger.info("Firebase initialized with default credentials")

    except Exception as e:
        logger.error("Failed to initialize Firebase", error=str(e))
        raise


def claims_from_token(decoded_token: dict[str, Any]) -> ExternalClaims:
    """
    Map a decoded identity token onto the claims used for reconciliation.

    Given/family names fall back to splitting the full name on the first
    space; the full name falls back to the joined given/family names.
    """
    name = decoded_token.get("name")
    given_name = decoded_token.get("given_name")
    family_name = decoded_token.get("family_name")

    if not given_name and name:
        name_parts = name.split(" ", 1)
        given_name = name_parts[0]
        family_name = family_name or (name_parts[1] if len(name_parts) > 1 else None)

    if not name and (given_name or family_name):
        name = " ".join(part for part in (given_name, family_name) if part)

    sign_in_provider = (decoded_token.get("firebase") or {}).get("sign_in_provider")
    provider = SIGN_IN_PROVIDERS.get(sign_in_provider, IdentityProvider.GOOGLE)

    return ExternalClaims(
        subject=decoded_token.get("sub") or decoded_token.get("uid") or "",
        email=decoded_token.get("email"),
        name=name,
        given_name=given_name,
        family_name=family_name,
        picture=decoded_token.get("picture"),
        provider=provider,
    )


async def verify_firebase_token(id_token: str) -> ExternalClaims:
    """
    Verify a Firebase ID token and extract its claims.

    Args:
        id_token: Firebase ID token from the client

    Returns:
        Verified claims

    Raises:
        InvalidAssertionException: If the token is invalid, expired or unverifiable
    """
    try:
        # clock_skew_seconds=10 to tolerate clock differences
        decoded_token = auth.verify_id_token(id_token, clock_skew_seconds=10)
    except auth.InvalidIdTokenError as e:
        logger.warning("Invalid or expired Firebase ID token", error=str(e))
        raise InvalidAssertionException(f"Invalid identity token: {e!s}")
    except Exception as e:
        logger.error("Firebase token verification failed", error=str(e))
        raise InvalidAssertionException(f"Token verification failed: {e!s}")

    logger.info(
        "Firebase token verified",
        uid=decoded_token.get("uid"),
        email=decoded_token.get("email"),
    )

    return claims_from_token(decoded_token)
