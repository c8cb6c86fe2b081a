"""RabbitMQ client configuration and utilities."""

import json
from typing import Any

import aio_pika
import structlog
from aio_pika.abc import AbstractExchange, AbstractRobustChannel, AbstractRobustConnection

from auth_service.config import settings
from auth_service.core.exceptions import DeliveryException

logger = structlog.get_logger(__name__)


class RabbitMQBroker:
    """Publishes JSON messages to RabbitMQ over a single robust connection."""

    def __init__(
        self,
        url: str,
        user_events_exchange: str,
        user_created_queue: str,
        user_created_routing_key: str,
        welcome_queue: str,
        message_ttl_ms: int,
        connect_timeout: float = 10.0,
    ):
        """Initialize broker with connection URL and topology names."""
        self.url = url
        self.user_events_exchange = user_events_exchange
        self.user_created_queue = user_created_queue
        self.user_created_routing_key = user_created_routing_key
        self.welcome_queue = welcome_queue
        self.message_ttl_ms = message_ttl_ms
        self.connect_timeout = connect_timeout

        self._connection: AbstractRobustConnection | None = None
        self._channel: AbstractRobustChannel | None = None
        self._exchanges: dict[str, AbstractExchange] = {}

    @property
    def is_connected(self) -> bool:
        """Whether the connection and channel are open."""
        return (
            self._connection is not None
            and not self._connection.is_closed
            and self._channel is not None
            and not self._channel.is_closed
        )

    async def connect(self, timeout: float | None = None) -> None:
        """Open the connection and declare the user events topology."""
        self._connection = await aio_pika.connect_robust(
            self.url, timeout=timeout if timeout is not None else self.connect_timeout
        )
        self._channel = await self._connection.channel()
        await self.declare_topology()
        logger.info("rabbitmq_connected", exchange=self.user_events_exchange)

    async def declare_topology(self) -> None:
        """
        Declare exchanges, queues and bindings for user events.

        - Topic exchange for user events, plus a dead letter exchange
        - Durable user created queue with a message TTL; expired or rejected
          messages are dead-lettered to ``<queue>.dlq``
        - Durable welcome queue consumed by the notification service
        """
        if self._channel is None:
            raise DeliveryException("RabbitMQ channel is not open")

        dlx_name = f"{self.user_events_exchange}.dlx"

        events_exchange = await self._channel.declare_exchange(
            self.user_events_exchange,
            aio_pika.ExchangeType.TOPIC,
            durable=True,
        )
        dead_letter_exchange = await self._channel.declare_exchange(
            dlx_name,
            aio_pika.ExchangeType.TOPIC,
            durable=True,
        )

        dead_letter_queue = await self._channel.declare_queue(
            f"{self.user_created_queue}.dlq",
            durable=True,
        )
        await dead_letter_queue.bind(dead_letter_exchange, routing_key="#")

        user_created_queue = await self._channel.declare_queue(
            self.user_created_queue,
            durable=True,
            arguments={
                "x-dead-letter-exchange": dlx_name,
                "x-message-ttl": self.message_ttl_ms,
            },
        )
        await user_created_queue.bind(events_exchange, routing_key=self.user_created_routing_key)

        await self._channel.declare_queue(self.welcome_queue, durable=True)

        self._exchanges = {
            self.user_events_exchange: events_exchange,
            dlx_name: dead_letter_exchange,
        }

    async def publish(self, exchange: str, routing_key: str, payload: dict[str, Any]) -> None:
        """
        Publish a persistent JSON message, connecting first if needed.

        Robust reconnection only starts after a first successful connect, so a
        broker that was down at startup is connected here on demand.

        Args:
            exchange: Exchange name; empty string for the default exchange
            routing_key: Routing key, or the queue name for the default exchange
            payload: JSON-serializable message body

        Raises:
            aio_pika.exceptions.AMQPConnectionError: If the broker is unreachable
            DeliveryException: If no channel could be opened
        """
        if not self.is_connected:
            logger.info("rabbitmq_connecting_on_publish")
            if self._connection is not None:
                await self.close()
            await self.connect()

        if self._channel is None:
            raise DeliveryException("RabbitMQ is not connected")

        if exchange:
            target = self._exchanges.get(exchange)
            if target is None:
                target = await self._channel.get_exchange(exchange)
                self._exchanges[exchange] = target
        else:
            target = self._channel.default_exchange

        message = aio_pika.Message(
            body=json.dumps(payload).encode("utf-8"),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
        )
        await target.publish(message, routing_key=routing_key)

    async def close(self) -> None:
        """Close the channel and connection."""
        if self._connection is not None:
            await self._connection.close()
        self._connection = None
        self._channel = None
        self._exchanges = {}


# Global broker instance
_broker: RabbitMQBroker | None = None


def get_broker() -> RabbitMQBroker:
    """
    Get or create the broker instance.

    The instance is created unconnected; ``connect`` is awaited at startup.
    """
    global _broker

    if _broker is None:
        _broker = RabbitMQBroker(
            url=settings.rabbitmq_url,
            user_events_exchange=settings.rabbitmq_user_events_exchange,
            user_created_queue=settings.rabbitmq_user_created_queue,
            user_created_routing_key=settings.rabbitmq_user_created_routing_key,
            welcome_queue=settings.rabbitmq_welcome_queue,
            message_ttl_ms=settings.rabbitmq_message_ttl_ms,
            connect_timeout=settings.event_publish_timeout_seconds,
        )

    return _broker


async def check_broker_connection() -> bool:
    """Check if the broker connection is healthy."""
    return _broker is not None and _broker.is_connected


async def close_broker_connection() -> None:
    """Close the broker connection."""
    global _broker

    if _broker is not None:
        await _broker.close()
        _broker = None
