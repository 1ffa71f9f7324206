"""Ordering service assembly."""

from dataclasses import dataclass, field

from eventbus.connection import BrokerConnection
from eventbus.consumer import EventConsumer
from eventbus.publisher import EventPublisher
from eventbus.settings import BrokerSettings
from ordering.domain import ordering
from ordering.order.cancellation import OrderCancellation
from ordering.order.order import Order
from ordering.order.payment_events import PaymentEventsHandler
from ordering.order.placement import OrderPlacement
from shared.consumers import build_consumer
from shared.lifecycle import SYSTEM_ACTOR
from shared.store import EntityStore, store_for

QUEUE = "ordering.payment-events"
TABLE = "orders"


@dataclass
class OrderingService:
    store: EntityStore
    publisher: EventPublisher
    placement: OrderPlacement = field(init=False)
    cancellation: OrderCancellation = field(init=False)
    events: PaymentEventsHandler = field(init=False)

    def __post_init__(self) -> None:
        self.placement = OrderPlacement(self.store, self.publisher)
        self.cancellation = OrderCancellation(self.store, self.publisher)
        self.events = PaymentEventsHandler(self.store, self.publisher)

    def place_order(self, user_id: str, items: list[dict], **kwargs) -> Order:
        return self.placement.place(user_id, items, **kwargs)

    def cancel_order(self, order_id: str, reason: str, changed_by: str = SYSTEM_ACTOR) -> Order:
        return self.cancellation.cancel(order_id, reason, changed_by)

    def order_history(self, order_id: str) -> list[dict]:
        """Status changes of an order, oldest first; raises ``NotFound``."""
        return self.store.get(order_id).history

    def consumer(self, connection: BrokerConnection, settings: BrokerSettings) -> EventConsumer:
        return build_consumer(connection, settings, QUEUE, self.events.handler_set(), domain=ordering)


def order_store(url: str) -> EntityStore:
    return store_for(url, Order, table_name=TABLE)
