"""Message schemas published to the broker."""

from datetime import UTC, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth_service.schemas.users import Identity

USER_CREATED = "USER_CREATED"
WELCOME = "WELCOME"


class EventModel(BaseModel):
    """Immutable message serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_message(self) -> dict:
        """JSON-compatible payload for the broker."""
        return self.model_dump(mode="json", by_alias=True)


class UserCreatedEvent(EventModel):
    """Snapshot of a newly created identity."""

    user_id: int
    user_uuid: UUID
    email: str
    name: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    identity_provider: str
    role: str
    created_at: datetime
    event_type: Literal["USER_CREATED"] = USER_CREATED
    event_timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserCreatedEvent":
        """Create event from identity record."""
        return cls(
            user_id=identity.id,
            user_uuid=identity.user_id,
            email=identity.email,
            name=identity.name,
            given_name=identity.given_name,
            family_name=identity.family_name,
            identity_provider=identity.identity_provider.value,
            role=identity.role.value,
            created_at=identity.created_at,
        )


class WelcomeTemplateData(EventModel):
    """Template variables for the welcome email."""

    user_name: str


class WelcomeNotification(EventModel):
    """Simplified message for the email notification consumer."""

    recipient_email: str
    recipient_name: str
    email_type: Literal["WELCOME"] = WELCOME
    template_data: WelcomeTemplateData

    @classmethod
    def from_identity(cls, identity: Identity) -> "WelcomeNotification":
        """Create notification from identity record."""
        recipient_name = identity.name or identity.given_name or identity.email
        return cls(
            recipient_email=identity.email,
            recipient_name=recipient_name,
            template_data=WelcomeTemplateData(user_name=identity.given_name or recipient_name),
        )
