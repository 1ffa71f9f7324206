"""Single AMQP connection per process component, built once at startup."""

from collections.abc import Callable

import pika
import pika.exceptions
import structlog

from eventbus.errors import TransientBrokerError

logger = structlog.get_logger(__name__)


class BrokerConnection:
    """Lazily opened, idempotently closed wrapper around a blocking connection.

    ``connection_factory`` receives ``pika.URLParameters`` and defaults to
    ``pika.BlockingConnection``.
    """

    def __init__(self, url: str, *, connection_factory: Callable | None = None) -> None:
        self.url = url
        self._factory = connection_factory or pika.BlockingConnection
        self._connection = None

    @property
    def is_open(self) -> bool:
        return self._connection is not None and self._connection.is_open

    def open(self):
        if self.is_open:
            return self._connection
        try:
            self._connection = self._factory(pika.URLParameters(self.url))
        except pika.exceptions.AMQPError as exc:
            raise TransientBrokerError(f"Could not connect to broker: {exc!r}") from exc
        logger.info("broker_connected", host=pika.URLParameters(self.url).host)
        return self._connection

    def channel(self):
        connection = self.open()
        try:
            return connection.channel()
        except pika.exceptions.AMQPError as exc:
            raise TransientBrokerError(f"Could not open channel: {exc!r}") from exc

    def flush(self) -> None:
        """Let the connection process pending frames (confirms, heartbeats)."""
        if self.is_open:
            self._connection.process_data_events(time_limit=0)

    def close(self) -> None:
        if self._connection is None:
            return
        connection, self._connection = self._connection, None
        if connection.is_open:
            try:
                connection.close()
            except pika.exceptions.AMQPError:
                logger.warning("broker_close_failed", exc_info=True)
        logger.info("broker_disconnected")
