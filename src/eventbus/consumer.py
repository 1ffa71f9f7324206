"""Queue consumer with manual acknowledgement and dead-lettering.

One consumer owns one channel on one queue. Each delivery is decoded,
dispatched to its handler and then acknowledged; any failure goes through
the ``RetryPolicy``. Exceptions raised by handlers never leave the
delivery callback.
"""

from collections.abc import Callable
from contextlib import AbstractContextManager, nullcontext
from enum import Enum

import pika
import pika.exceptions
import structlog

from eventbus.connection import BrokerConnection
from eventbus.errors import BrokerError, MalformedMessage, TransientBrokerError
from eventbus.handlers import HandlerSet
from eventbus.policy import RETRY_HEADER, Decision, RetryPolicy, read_retry_count
from eventbus.settings import MAX_DELIVERY_RETRIES
from eventbus.topology import QueueTopology

logger = structlog.get_logger(__name__)


class ConsumerState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    READY = "ready"


class EventConsumer:
    def __init__(
        self,
        connection: BrokerConnection,
        topology: QueueTopology,
        handlers: HandlerSet,
        parser: Callable,
        *,
        max_retries: int = MAX_DELIVERY_RETRIES,
        terminal_errors: tuple[type[BaseException], ...] = (MalformedMessage,),
        dispatch_context: Callable[[], AbstractContextManager] | None = None,
    ) -> None:
        self._connection = connection
        self.topology = topology
        self.handlers = handlers
        self._parse = parser
        self.policy = RetryPolicy(max_retries, terminal_errors)
        self._dispatch_context = dispatch_context or nullcontext
        self._channel = None
        self._consumer_tag = None

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    @property
    def state(self) -> ConsumerState:
        if not self._connection.is_open:
            return ConsumerState.DISCONNECTED
        if self._channel is None or not self._channel.is_open:
            return ConsumerState.CONNECTED
        return ConsumerState.READY

    def connect(self) -> None:
        """Declare the topology and get ready to consume. Idempotent."""
        if self.state == ConsumerState.READY:
            return
        self.handlers.check_bindings(self.topology.routing_keys)

        channel = self._connection.channel()
        try:
            self.topology.declare(channel)
            channel.basic_qos(prefetch_count=1)
        except pika.exceptions.AMQPError as exc:
            raise TransientBrokerError(f"Could not declare {self.topology.queue}: {exc!r}") from exc
        self._channel = channel
        logger.info("consumer_ready", queue=self.topology.queue, max_retries=self.policy.max_retries)

    def start_consuming(self) -> None:
        """Block in the receive loop until ``stop`` is called or the channel fails."""
        if self.state != ConsumerState.READY:
            raise BrokerError("Consumer is not connected; call connect() first")

        self._consumer_tag = self._channel.basic_consume(
            queue=self.topology.queue,
            on_message_callback=self._on_message,
            auto_ack=False,
        )
        logger.info("consumer_started", queue=self.topology.queue)
        try:
            self._channel.start_consuming()
        except pika.exceptions.AMQPError as exc:
            raise TransientBrokerError(f"Consumer on {self.topology.queue} lost its channel: {exc!r}") from exc
        finally:
            self._consumer_tag = None

    def stop(self) -> None:
        if self._channel is not None and self._channel.is_open:
            self._channel.stop_consuming()

    def close(self) -> None:
        """Tear down channel then connection; unacked deliveries go back to the broker."""
        channel, self._channel = self._channel, None
        try:
            if channel is not None and channel.is_open:
                channel.close()
        except pika.exceptions.AMQPError:
            logger.warning("consumer_channel_close_failed", queue=self.topology.queue, exc_info=True)
        finally:
            self._connection.close()
        logger.info("consumer_closed", queue=self.topology.queue)

    # -------------------------------------------------------------------
    # Delivery handling
    # -------------------------------------------------------------------
    def _on_message(self, channel, method, properties, body: bytes) -> None:
        retry_count = read_retry_count(properties)
        correlation_id = getattr(properties, "correlation_id", None)

        with structlog.contextvars.bound_contextvars(
            queue=self.topology.queue,
            delivery_tag=method.delivery_tag,
            correlation_id=correlation_id,
            retry_count=retry_count,
        ):
            try:
                event = self._parse(body)
                with structlog.contextvars.bound_contextvars(
                    event_type=event.event_type, correlation_id=event.correlation_id
                ):
                    with self._dispatch_context():
                        self.handlers.dispatch(event)
            except Exception as exc:
                self._handle_failure(channel, method, properties, body, retry_count, exc)
                return

            channel.basic_ack(delivery_tag=method.delivery_tag)
            logger.debug("delivery_acked")

    def _handle_failure(self, channel, method, properties, body, retry_count: int, error: Exception) -> None:
        decision = self.policy.decide(error, retry_count)

        if decision == Decision.DEAD_LETTER:
            logger.error(
                "delivery_dead_lettered",
                error=str(error),
                error_type=type(error).__name__,
                terminal=self.policy.is_terminal(error),
                dead_letter_queue=self.topology.dead_letter_queue,
            )
            channel.basic_nack(delivery_tag=method.delivery_tag, requeue=False)
            return

        logger.warning(
            "delivery_retry_scheduled",
            error=str(error),
            error_type=type(error).__name__,
            next_retry_count=retry_count + 1,
        )
        try:
            channel.basic_publish(
                exchange="",
                routing_key=self.topology.queue,
                body=body,
                properties=_with_retry_count(properties, retry_count + 1),
            )
        except pika.exceptions.AMQPError:
            logger.exception("delivery_republish_failed")
            channel.basic_nack(delivery_tag=method.delivery_tag, requeue=True)
            return
        channel.basic_ack(delivery_tag=method.delivery_tag)


def _with_retry_count(properties, retry_count: int) -> pika.BasicProperties:
    headers = dict(getattr(properties, "headers", None) or {})
    headers[RETRY_HEADER] = retry_count
    return pika.BasicProperties(
        content_type=properties.content_type,
        content_encoding=properties.content_encoding,
        delivery_mode=properties.delivery_mode or 2,
        correlation_id=properties.correlation_id,
        message_id=properties.message_id,
        timestamp=properties.timestamp,
        type=properties.type,
        headers=headers,
    )
