"""Data-access layer."""

from auth_service.repositories.users import ProfileRepository, UserRepository

__all__ = ["ProfileRepository", "UserRepository"]
