"""In-memory stand-ins for the broker, used in tests and dry runs.

``FakeBroker`` mimics the slice of RabbitMQ the services rely on: durable
topic exchanges, the default exchange, queue dead-lettering, manual
acknowledgement and prefetch. ``FakeBroker.connect`` has the same signature
as ``pika.BlockingConnection`` so it can be handed to ``BrokerConnection``
as its ``connection_factory``.

``RecordingPublisher`` skips the broker entirely and keeps what it is given.
"""

import itertools
import re
import threading
from collections import deque
from dataclasses import dataclass

import pika
import pika.exceptions
from pika.spec import Basic

from eventbus.errors import TransientBrokerError
from eventbus.publisher import EventPublisher, check_publishable


@dataclass
class FakeMessage:
    exchange: str
    routing_key: str
    body: bytes
    properties: pika.BasicProperties
    redelivered: bool = False

    @property
    def headers(self) -> dict:
        return self.properties.headers or {}


class FakeQueue:
    def __init__(self, name: str, arguments: dict | None = None) -> None:
        self.name = name
        self.arguments = dict(arguments or {})
        self.messages: deque[FakeMessage] = deque()


def _topic_pattern(binding_key: str) -> re.Pattern:
    words = []
    for word in binding_key.split("."):
        if word == "*":
            words.append(r"[^.]+")
        elif word == "#":
            words.append(r".*")
        else:
            words.append(re.escape(word))
    return re.compile(r"^" + r"\.".join(words) + r"$")


class FakeBroker:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self.exchanges: dict[str, str] = {}
        self.queues: dict[str, FakeQueue] = {}
        self.bindings: dict[str, list[tuple[str, str]]] = {}
        self.connections: list["FakeConnection"] = []
        self._tags = itertools.count(1)

    def connect(self, parameters=None) -> "FakeConnection":
        connection = FakeConnection(self)
        self.connections.append(connection)
        return connection

    # -------------------------------------------------------------------
    # Inspection helpers
    # -------------------------------------------------------------------
    def messages(self, queue: str) -> list[FakeMessage]:
        with self._lock:
            return list(self.queues[queue].messages)

    def depth(self, queue: str) -> int:
        with self._lock:
            return len(self.queues[queue].messages) if queue in self.queues else 0

    # -------------------------------------------------------------------
    # Broker internals
    # -------------------------------------------------------------------
    def next_tag(self) -> int:
        return next(self._tags)

    def declare_exchange(self, name: str, exchange_type: str) -> None:
        with self._lock:
            existing = self.exchanges.get(name)
            if existing is not None and existing != exchange_type:
                raise pika.exceptions.ChannelClosedByBroker(406, f"PRECONDITION_FAILED - exchange {name}")
            self.exchanges[name] = exchange_type
            self.bindings.setdefault(name, [])

    def declare_queue(self, name: str, arguments: dict | None) -> None:
        with self._lock:
            queue = self.queues.get(name)
            if queue is None:
                self.queues[name] = FakeQueue(name, arguments)
            elif queue.arguments != dict(arguments or {}):
                raise pika.exceptions.ChannelClosedByBroker(406, f"PRECONDITION_FAILED - queue {name}")

    def bind(self, queue: str, exchange: str, routing_key: str) -> None:
        with self._lock:
            if exchange not in self.exchanges:
                raise pika.exceptions.ChannelClosedByBroker(404, f"NOT_FOUND - exchange {exchange}")
            binding = (routing_key, queue)
            if binding not in self.bindings[exchange]:
                self.bindings[exchange].append(binding)

    def route(self, exchange: str, routing_key: str, body: bytes, properties) -> int:
        """Enqueue a message; returns how many queues received it."""
        with self._lock:
            if exchange == "":
                targets = [routing_key] if routing_key in self.queues else []
            else:
                if exchange not in self.exchanges:
                    raise pika.exceptions.ChannelClosedByBroker(404, f"NOT_FOUND - exchange {exchange}")
                targets = [
                    queue
                    for binding_key, queue in self.bindings[exchange]
                    if _topic_pattern(binding_key).match(routing_key)
                ]
            for queue in dict.fromkeys(targets):
                self.queues[queue].messages.append(
                    FakeMessage(exchange, routing_key, bytes(body), properties or pika.BasicProperties())
                )
            return len(targets)

    def dead_letter(self, queue_name: str, message: FakeMessage) -> None:
        with self._lock:
            queue = self.queues[queue_name]
            target = queue.arguments.get("x-dead-letter-routing-key")
            if target is None:
                return
            exchange = queue.arguments.get("x-dead-letter-exchange", "")
            headers = dict(message.headers)
            deaths = list(headers.get("x-death", []))
            deaths.insert(0, {"queue": queue_name, "reason": "rejected", "count": 1})
            headers["x-death"] = deaths
            properties = pika.BasicProperties(
                content_type=message.properties.content_type,
                delivery_mode=message.properties.delivery_mode,
                correlation_id=message.properties.correlation_id,
                message_id=message.properties.message_id,
                timestamp=message.properties.timestamp,
                headers=headers,
            )
            self.route(exchange, target, message.body, properties)

    def requeue(self, queue_name: str, message: FakeMessage) -> None:
        with self._lock:
            message.redelivered = True
            self.queues[queue_name].messages.appendleft(message)


class FakeConnection:
    def __init__(self, broker: FakeBroker) -> None:
        self.broker = broker
        self.is_open = True
        self.channels: list["FakeChannel"] = []

    def channel(self) -> "FakeChannel":
        if not self.is_open:
            raise pika.exceptions.ConnectionWrongStateError("Connection is closed")
        channel = FakeChannel(self)
        self.channels.append(channel)
        return channel

    def process_data_events(self, time_limit=0) -> None:
        if not self.is_open:
            raise pika.exceptions.ConnectionWrongStateError("Connection is closed")

    def close(self) -> None:
        for channel in self.channels:
            if channel.is_open:
                channel.close()
        self.is_open = False


class FakeChannel:
    def __init__(self, connection: FakeConnection) -> None:
        self.connection = connection
        self.broker = connection.broker
        self.is_open = True
        self.prefetch_count = 0
        self.confirming = False
        self.published: list[FakeMessage] = []
        self.acked: list[int] = []
        self.nacked: list[tuple[int, bool]] = []
        self._consumers: dict[str, tuple[str, object]] = {}
        self._unacked: dict[int, tuple[str, FakeMessage]] = {}
        self._stopping = False

    def _check_open(self) -> None:
        if not self.is_open:
            raise pika.exceptions.ChannelWrongStateError("Channel is closed.")

    # -------------------------------------------------------------------
    # Declarations
    # -------------------------------------------------------------------
    def exchange_declare(self, exchange, exchange_type="direct", durable=False, **kwargs) -> None:
        self._check_open()
        self.broker.declare_exchange(exchange, exchange_type)

    def queue_declare(self, queue, durable=False, arguments=None, **kwargs) -> None:
        self._check_open()
        self.broker.declare_queue(queue, arguments)

    def queue_bind(self, queue, exchange, routing_key=None, **kwargs) -> None:
        self._check_open()
        self.broker.bind(queue, exchange, routing_key)

    def basic_qos(self, prefetch_count=0, **kwargs) -> None:
        self._check_open()
        self.prefetch_count = prefetch_count

    def confirm_delivery(self) -> None:
        self._check_open()
        self.confirming = True

    # -------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------
    def basic_publish(self, exchange, routing_key, body, properties=None, mandatory=False) -> None:
        self._check_open()
        routed = self.broker.route(exchange, routing_key, body, properties)
        self.published.append(FakeMessage(exchange, routing_key, bytes(body), properties))
        if routed == 0 and mandatory and self.confirming:
            raise pika.exceptions.UnroutableError([])

    # -------------------------------------------------------------------
    # Consuming
    # -------------------------------------------------------------------
    def basic_consume(self, queue, on_message_callback, auto_ack=False, **kwargs) -> str:
        self._check_open()
        if queue not in self.broker.queues:
            raise pika.exceptions.ChannelClosedByBroker(404, f"NOT_FOUND - queue {queue}")
        tag = f"ctag-{self.broker.next_tag()}"
        self._consumers[tag] = (queue, on_message_callback)
        return tag

    def basic_ack(self, delivery_tag=0, multiple=False) -> None:
        self._check_open()
        self._unacked.pop(delivery_tag)
        self.acked.append(delivery_tag)

    def basic_nack(self, delivery_tag=0, multiple=False, requeue=True) -> None:
        self._check_open()
        queue, message = self._unacked.pop(delivery_tag)
        self.nacked.append((delivery_tag, requeue))
        if requeue:
            self.broker.requeue(queue, message)
        else:
            self.broker.dead_letter(queue, message)

    def start_consuming(self) -> None:
        """Deliver until every consumed queue is empty or ``stop_consuming`` is called.

        Consumers are cancelled on return, as pika does on ``stop_consuming``.
        """
        self._check_open()
        self._stopping = False
        try:
            self._deliver_until_idle()
        finally:
            self._consumers.clear()

    def _deliver_until_idle(self) -> None:
        while not self._stopping and self.is_open:
            delivered = False
            for tag, (queue, callback) in list(self._consumers.items()):
                if self.prefetch_count and len(self._unacked) >= self.prefetch_count:
                    return
                with self.broker._lock:
                    messages = self.broker.queues[queue].messages
                    message = messages.popleft() if messages else None
                if message is None:
                    continue
                delivery_tag = self.broker.next_tag()
                self._unacked[delivery_tag] = (queue, message)
                method = Basic.Deliver(
                    consumer_tag=tag,
                    delivery_tag=delivery_tag,
                    redelivered=message.redelivered,
                    exchange=message.exchange,
                    routing_key=message.routing_key,
                )
                callback(self, method, message.properties, message.body)
                delivered = True
            if not delivered:
                return

    def stop_consuming(self) -> None:
        self._stopping = True

    def close(self) -> None:
        if not self.is_open:
            return
        for queue, message in self._unacked.values():
            self.broker.requeue(queue, message)
        self._unacked.clear()
        self._consumers.clear()
        self.is_open = False


class RecordingPublisher(EventPublisher):
    """Publisher that keeps events in memory.

    ``fail_with`` makes every publish raise, which is how tests simulate a
    broker outage.
    """

    def __init__(self) -> None:
        self.events: list = []
        self.fail_with: Exception | None = None
        self.closed = False

    def publish(self, event) -> None:
        check_publishable(event)
        if self.closed:
            raise TransientBrokerError("Publisher is closed")
        if self.fail_with is not None:
            raise self.fail_with
        self.events.append(event)

    def of_type(self, event_cls) -> list:
        return [event for event in self.events if isinstance(event, event_cls)]

    def close(self) -> None:
        self.closed = True
