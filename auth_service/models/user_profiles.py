"""User profile model definition using SQLAlchemy Core."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Table, Text

from auth_service.models.users import metadata

user_profiles = Table(
    "user_profile",
    metadata,
    # Same primary key as app_user.id (one-to-one)
    Column(
        "id",
        Integer,
        ForeignKey("app_user.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("phone", String(32)),
    Column("date_of_birth", Date),
    Column("driving_license_number", Text),
    # Optional, for tourists only
    Column("passport_number", Text),
    Column("preferred_language", Text),
    Column("country_of_residence", Text),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)
