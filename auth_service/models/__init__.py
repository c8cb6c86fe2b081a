"""Database models."""

from auth_service.models.user_profiles import user_profiles
from auth_service.models.users import metadata, users

__all__ = [
    "metadata",
    "user_profiles",
    "users",
]
