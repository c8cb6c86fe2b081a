"""User model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    MetaData,
    Table,
    Text,
    Uuid,
    text,
)

metadata = MetaData()

users = Table(
    "app_user",
    metadata,
    # Internal ID (for joins only, never exposed for lookups)
    Column("id", Integer, primary_key=True, autoincrement=True),
    # Opaque public identifier, generated by the application
    Column("user_id", Uuid, nullable=False, unique=True),
    # Natural key for reconciliation
    Column("email", Text, nullable=False, unique=True, index=True),
    # Profile info (mutable, mirrored from the identity provider)
    Column("name", Text),
    Column("given_name", Text),
    Column("family_name", Text),
    Column("picture", Text),
    Column("google_sub", Text, unique=True),
    # Authorization (set once at creation)
    Column("role", Text, nullable=False),
    Column("identity_provider", Text, nullable=False),
    # Account state
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    CheckConstraint(
        "role IN ('USER', 'ADMIN', 'FLEET_MANAGER')",
        name="app_user_role_check",
    ),
    CheckConstraint(
        "identity_provider IN ('GOOGLE', 'LOCAL', 'GITHUB')",
        name="app_user_identity_provider_check",
    ),
)
