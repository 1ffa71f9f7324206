"""Event publisher port and its RabbitMQ adapter.

Events go to a durable topic exchange as persistent JSON messages with the
event type as routing key. The publisher never retries; a failure surfaces
as ``TransientBrokerError`` and the caller decides what to do with it.
"""

from abc import ABC, abstractmethod

import pika
import pika.exceptions
import structlog

from eventbus.connection import BrokerConnection
from eventbus.errors import TransientBrokerError

logger = structlog.get_logger(__name__)

CONTENT_TYPE = "application/json"
PERSISTENT_DELIVERY_MODE = 2


def message_properties(event) -> pika.BasicProperties:
    return pika.BasicProperties(
        content_type=CONTENT_TYPE,
        delivery_mode=PERSISTENT_DELIVERY_MODE,
        correlation_id=event.correlation_id,
        message_id=str(event.event_id),
        timestamp=int(event.timestamp.timestamp()),
        headers={
            "x-event-type": event.event_type,
            "x-correlation-id": event.correlation_id,
        },
    )


def check_publishable(event) -> None:
    if not getattr(event, "event_type", None):
        raise ValueError("event_type is required")
    if not getattr(event, "correlation_id", None):
        raise ValueError("correlation_id is required")


class EventPublisher(ABC):
    """Abstract event publisher."""

    @abstractmethod
    def publish(self, event) -> None:
        """Publish one event; raises ``TransientBrokerError`` on broker failure."""
        ...

    def close(self) -> None:
        """Release broker resources. Safe to call more than once."""


class RabbitEventPublisher(EventPublisher):
    def __init__(
        self,
        connection: BrokerConnection,
        exchange: str,
        *,
        confirm_delivery: bool = False,
    ) -> None:
        self._connection = connection
        self.exchange = exchange
        self.confirm_delivery = confirm_delivery
        self._channel = None

    @property
    def is_connected(self) -> bool:
        return self._channel is not None and self._channel.is_open

    def connect(self) -> None:
        if self.is_connected:
            return
        channel = self._connection.channel()
        try:
            channel.exchange_declare(exchange=self.exchange, exchange_type="topic", durable=True)
            if self.confirm_delivery:
                channel.confirm_delivery()
        except pika.exceptions.AMQPError as exc:
            raise TransientBrokerError(f"Could not prepare publisher channel: {exc!r}") from exc
        self._channel = channel
        logger.info("publisher_connected", exchange=self.exchange, confirm_delivery=self.confirm_delivery)

    def publish(self, event) -> None:
        check_publishable(event)
        if not self.is_connected:
            raise TransientBrokerError("Publisher is not connected")

        try:
            self._channel.basic_publish(
                exchange=self.exchange,
                routing_key=event.event_type,
                body=event.to_json(),
                properties=message_properties(event),
                mandatory=self.confirm_delivery,
            )
        except pika.exceptions.UnroutableError as exc:
            raise TransientBrokerError(f"{event.event_type} was not routed to any queue") from exc
        except pika.exceptions.NackError as exc:
            raise TransientBrokerError(f"Broker refused {event.event_type}") from exc
        except pika.exceptions.AMQPError as exc:
            raise TransientBrokerError(f"Could not publish {event.event_type}: {exc!r}") from exc

        logger.info(
            "event_published",
            event_type=event.event_type,
            event_id=str(event.event_id),
            correlation_id=event.correlation_id,
            exchange=self.exchange,
        )

    def close(self) -> None:
        channel, self._channel = self._channel, None
        try:
            self._connection.flush()
            if channel is not None and channel.is_open:
                channel.close()
        except pika.exceptions.AMQPError:
            logger.warning("publisher_channel_close_failed", exc_info=True)
        finally:
            self._connection.close()
