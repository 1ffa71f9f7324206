"""Exchange, queue and dead-letter layout for one consuming service."""

from dataclasses import dataclass

import structlog

logger = structlog.get_logger(__name__)

DEAD_LETTER_SUFFIX = ".dlq"


@dataclass(frozen=True)
class QueueTopology:
    """A durable queue bound to explicit routing keys on a topic exchange.

    Messages rejected without requeue are routed through the default
    exchange to ``<queue>.dlq``.
    """

    exchange: str
    queue: str
    routing_keys: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.queue:
            raise ValueError("queue name is required")
        if not self.routing_keys:
            raise ValueError(f"{self.queue} must bind at least one routing key")
        for key in self.routing_keys:
            if "*" in key or "#" in key:
                raise ValueError(f"{self.queue} binds wildcard routing key {key!r}; bind event types explicitly")

    @property
    def dead_letter_queue(self) -> str:
        return f"{self.queue}{DEAD_LETTER_SUFFIX}"

    def declare(self, channel) -> None:
        """Declare everything on ``channel``; redeclaring is a no-op on the broker."""
        channel.exchange_declare(exchange=self.exchange, exchange_type="topic", durable=True)
        channel.queue_declare(queue=self.dead_letter_queue, durable=True)
        channel.queue_declare(
            queue=self.queue,
            durable=True,
            arguments={
                "x-dead-letter-exchange": "",
                "x-dead-letter-routing-key": self.dead_letter_queue,
            },
        )
        for routing_key in self.routing_keys:
            channel.queue_bind(queue=self.queue, exchange=self.exchange, routing_key=routing_key)

        logger.info(
            "topology_declared",
            exchange=self.exchange,
            queue=self.queue,
            dead_letter_queue=self.dead_letter_queue,
            routing_keys=list(self.routing_keys),
        )
