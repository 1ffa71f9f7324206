"""Notifications service assembly."""

from dataclasses import dataclass, field

from eventbus.connection import BrokerConnection
from eventbus.consumer import EventConsumer
from eventbus.handlers import HandlerSet
from eventbus.settings import BrokerSettings
from notifications.channel import ProviderRegistry
from notifications.domain import notifications
from notifications.notification.identity_events import IdentityEventsHandler
from notifications.notification.notification import Notification
from notifications.notification.ordering_events import OrderingEventsHandler
from notifications.notification.payment_events import PaymentEventsHandler
from notifications.notification.retry import build_retry_controller
from notifications.notification.sending import NotificationSender
from shared.consumers import build_consumer
from shared.events.identity import UserCreated
from shared.events.ordering import OrderCancelled, OrderCreated, OrderPaid
from shared.events.payments import PaymentFailed
from shared.retry import RetryController
from shared.store import EntityStore, store_for

QUEUE = "notifications.events"
TABLE = "notifications"


@dataclass
class NotificationsService:
    store: EntityStore
    providers: ProviderRegistry
    sender: NotificationSender = field(init=False)
    retry_controller: RetryController = field(init=False)

    def __post_init__(self) -> None:
        self.sender = NotificationSender(self.store, self.providers)
        self.retry_controller = build_retry_controller(self.store, self.providers)

    def handler_set(self) -> HandlerSet:
        identity = IdentityEventsHandler(self.sender)
        ordering = OrderingEventsHandler(self.sender)
        payments = PaymentEventsHandler(self.sender)

        handlers = HandlerSet()
        handlers.register(UserCreated, identity.on_user_created)
        handlers.register(OrderCreated, ordering.on_order_created)
        handlers.register(OrderPaid, ordering.on_order_paid)
        handlers.register(OrderCancelled, ordering.on_order_cancelled)
        handlers.register(PaymentFailed, payments.on_payment_failed)
        return handlers

    def consumer(self, connection: BrokerConnection, settings: BrokerSettings) -> EventConsumer:
        return build_consumer(connection, settings, QUEUE, self.handler_set(), domain=notifications)


def notification_store(url: str) -> EntityStore:
    return store_for(url, Notification, table_name=TABLE)
