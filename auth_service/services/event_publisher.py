"""Publishing of user lifecycle events to the message broker."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import structlog

from auth_service.config import Settings
from auth_service.core.retry import retry_async
from auth_service.schemas.events import UserCreatedEvent, WelcomeNotification
from auth_service.schemas.users import Identity

logger = structlog.get_logger(__name__)


class MessageBroker(Protocol):
    """Transport that delivers a JSON payload to an exchange."""

    async def publish(self, exchange: str, routing_key: str, payload: dict[str, Any]) -> None:
        """Deliver one message."""


class UserEventPublisher:
    """
    Publishes user created events with bounded retry.

    Publishing never raises: once every attempt has failed the failure is
    logged with the full payload and swallowed, so an identity that has
    already been committed is never affected by broker outages.
    """

    def __init__(
        self,
        broker: MessageBroker,
        user_events_exchange: str,
        user_created_routing_key: str,
        welcome_queue: str,
        max_attempts: int = 3,
        retry_delay: float = 2.0,
        attempt_timeout: float | None = 5.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize publisher with broker and delivery policy."""
        self._broker = broker
        self.user_events_exchange = user_events_exchange
        self.user_created_routing_key = user_created_routing_key
        self.welcome_queue = welcome_queue
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.attempt_timeout = attempt_timeout
        self._sleep = sleep

    @classmethod
    def from_settings(cls, broker: MessageBroker, settings: Settings) -> "UserEventPublisher":
        """Build a publisher from application settings."""
        return cls(
            broker=broker,
            user_events_exchange=settings.rabbitmq_user_events_exchange,
            user_created_routing_key=settings.rabbitmq_user_created_routing_key,
            welcome_queue=settings.rabbitmq_welcome_queue,
            max_attempts=settings.event_publish_max_attempts,
            retry_delay=settings.event_publish_retry_delay_seconds,
            attempt_timeout=settings.event_publish_timeout_seconds,
        )

    async def publish_user_created(self, identity: Identity) -> None:
        """
        Publish the user created event and the welcome notification.

        The two deliveries are independent; a failure of one does not
        prevent the other.

        Args:
            identity: The newly created (and already committed) identity
        """
        event = UserCreatedEvent.from_identity(identity)
        await self._deliver(
            exchange=self.user_events_exchange,
            routing_key=self.user_created_routing_key,
            payload=event.to_message(),
            message_name="user_created_event",
            email=identity.email,
        )

        welcome = WelcomeNotification.from_identity(identity)
        await self._deliver(
            exchange="",
            routing_key=self.welcome_queue,
            payload=welcome.to_message(),
            message_name="welcome_notification",
            email=identity.email,
        )

    async def _deliver(
        self,
        exchange: str,
        routing_key: str,
        payload: dict[str, Any],
        message_name: str,
        email: str,
    ) -> bool:
        try:
            await retry_async(
                lambda: self._broker.publish(exchange, routing_key, payload),
                attempts=self.max_attempts,
                delay=self.retry_delay,
                timeout=self.attempt_timeout,
                sleep=self._sleep,
                operation_name=message_name,
            )
        except Exception as e:
            logger.error(
                f"{message_name}_delivery_failed",
                email=email,
                exchange=exchange,
                routing_key=routing_key,
                attempts=self.max_attempts,
                error=str(e) or e.__class__.__name__,
                payload=payload,
            )
            return False

        logger.info(
            f"{message_name}_published",
            email=email,
            exchange=exchange,
            routing_key=routing_key,
        )
        return True
