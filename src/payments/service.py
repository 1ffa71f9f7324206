"""Payments service assembly: store, gateway and publisher in, use cases out."""

from dataclasses import dataclass, field

from eventbus.connection import BrokerConnection
from eventbus.consumer import EventConsumer
from eventbus.publisher import EventPublisher
from eventbus.settings import BrokerSettings
from payments.domain import payments
from payments.gateway.port import PaymentGateway
from payments.payment.cancellation import PaymentCancellation
from payments.payment.initiation import PaymentInitiator
from payments.payment.ordering_events import OrderingEventsHandler
from payments.payment.payment import Payment
from payments.payment.retry import build_retry_controller
from shared.consumers import build_consumer
from shared.retry import RetryController
from shared.store import EntityStore, store_for

QUEUE = "payments.order-events"
TABLE = "payments"
INDEXED_FIELDS = ("order_id",)


@dataclass
class PaymentsService:
    store: EntityStore
    gateway: PaymentGateway
    publisher: EventPublisher
    initiator: PaymentInitiator = field(init=False)
    cancellation: PaymentCancellation = field(init=False)
    retry_controller: RetryController = field(init=False)
    events: OrderingEventsHandler = field(init=False)

    def __post_init__(self) -> None:
        self.initiator = PaymentInitiator(self.store, self.gateway, self.publisher)
        self.cancellation = PaymentCancellation(self.store, self.publisher)
        self.retry_controller = build_retry_controller(self.store, self.gateway, self.publisher)
        self.events = OrderingEventsHandler(self.initiator, self.cancellation)

    def consumer(self, connection: BrokerConnection, settings: BrokerSettings) -> EventConsumer:
        return build_consumer(connection, settings, QUEUE, self.events.handler_set(), domain=payments)


def payment_store(url: str) -> EntityStore:
    return store_for(url, Payment, table_name=TABLE, indexed=INDEXED_FIELDS)
