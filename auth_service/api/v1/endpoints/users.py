"""User endpoints."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query

from auth_service.core.exceptions import BadRequestException, NotFoundException
from auth_service.dependencies import CurrentUser, DatabaseSession, require_roles
from auth_service.schemas.users import (
    Identity,
    IdentityResponse,
    Role,
    SignupProfileRequest,
    SignupResponse,
    UserExistsResponse,
)
from auth_service.services.user_service import UserService

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Users"])


@router.get("/check", response_model=UserExistsResponse)
async def check_user(db: DatabaseSession, email: Annotated[str, Query()] = "") -> UserExistsResponse:
    """Pre-login check whether an identity exists for an email."""
    if not email.strip():
        raise BadRequestException("Email parameter is required")

    exists = await UserService(db).exists_by_email(email)
    return UserExistsResponse(exists=exists, email=email)


@router.get("/me", response_model=IdentityResponse)
async def get_me(current_user: CurrentUser) -> IdentityResponse:
    """Get the current identity."""
    return IdentityResponse.model_validate(current_user)


@router.post("/signup", response_model=SignupResponse)
async def signup_profile(
    request: SignupProfileRequest,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> SignupResponse:
    """Create or update the current user's profile."""
    logger.info("signup_profile_started", user_id=str(current_user.user_id))

    if request.requested_role is not None and request.requested_role != current_user.role:
        logger.info("requested_role_ignored", requested_role=request.requested_role.value)

    user_service = UserService(db)
    profile = await user_service.upsert_profile(current_user.id, request)

    identity = await user_service.get_by_id(current_user.id)
    if identity is None:
        raise NotFoundException("User not found")

    return SignupResponse.from_records(identity, profile)


@router.get("/admin/dashboard")
async def get_admin_dashboard(
    current_user: Annotated[Identity, Depends(require_roles(Role.ADMIN))],
) -> dict[str, str]:
    """Admin-only endpoint."""
    logger.info("admin_dashboard_accessed", user_id=str(current_user.user_id))
    return {"message": "Welcome to the Admin Dashboard!"}


@router.get("/fleet/vehicles")
async def get_fleet_vehicles(
    current_user: Annotated[Identity, Depends(require_roles(Role.FLEET_MANAGER, Role.ADMIN))],
) -> dict[str, str]:
    """Fleet manager (or admin) endpoint."""
    logger.info("fleet_vehicles_accessed", user_id=str(current_user.user_id))
    return {"message": "Here is the list of fleet vehicles."}
