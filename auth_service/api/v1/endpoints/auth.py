"""Authentication endpoints."""

from typing import Annotated

from fastapi import APIRouter, Body, Header, status

from auth_service.core.exceptions import InvalidAssertionException
from auth_service.dependencies import AuthServiceDep
from auth_service.schemas.auth import AuthResponse, GoogleAuthRequest, Token, TokenRefresh

router = APIRouter()


@router.post(
    "/google",
    response_model=AuthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Sign in with a Google identity token",
)
async def authenticate_with_google(
    auth_service: AuthServiceDep,
    authorization: Annotated[str, Header()],
    request: Annotated[GoogleAuthRequest | None, Body()] = None,
) -> AuthResponse:
    """
    Verify a Google identity token and return a session token.

    The identity token is sent in the ``Authorization`` header, with or
    without the ``Bearer`` prefix. On first sign-in the identity is created
    and a user created event is published.

    Args:
        auth_service: Authentication service
        authorization: Identity token header
        request: Optional role hint for first sign-in

    Returns:
        Session tokens, profile setup flag and user info
    """
    id_token = authorization.removeprefix("Bearer ").strip()
    if not id_token:
        raise InvalidAssertionException("Identity token is required")

    requested_role = request.requested_role if request else None
    return await auth_service.sign_in_with_google(id_token, requested_role)


@router.post(
    "/refresh",
    response_model=Token,
    status_code=status.HTTP_200_OK,
    tags=["Authentication"],
    summary="Refresh session tokens",
)
async def refresh_token(request: TokenRefresh, auth_service: AuthServiceDep) -> Token:
    """
    Issue a new token pair from a refresh token.

    Args:
        request: Refresh token
        auth_service: Authentication service

    Returns:
        New access token and refresh token
    """
    return await auth_service.refresh_access_token(request.refresh_token)
