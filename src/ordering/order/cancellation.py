"""Cancel an order that has not settled yet."""

import structlog

from eventbus.publisher import EventPublisher
from ordering.order.order import Order
from shared.events.ordering import OrderCancelled
from shared.events.registry import build_event
from shared.lifecycle import SYSTEM_ACTOR
from shared.store import EntityStore

logger = structlog.get_logger(__name__)


class OrderCancellation:
    def __init__(self, store: EntityStore, publisher: EventPublisher) -> None:
        self.store = store
        self.publisher = publisher

    def cancel(self, order_id: str, reason: str, changed_by: str = SYSTEM_ACTOR) -> Order:
        """Cancel the order and publish ``order.cancelled``.

        Raises ``NotFound`` for an unknown order and ``InvalidTransition``
        for one that is already paid or cancelled.
        """
        order = self.store.get(order_id)
        order.cancel(reason, changed_by)
        self.store.save(order)

        self.publisher.publish(
            build_event(
                OrderCancelled,
                order.correlation_id,
                order_id=str(order.id),
                user_id=order.user_id,
                reason=reason,
                customer_email=order.customer_email,
            )
        )
        logger.info("order_cancelled", order_id=str(order.id), reason=reason, changed_by=changed_by)
        return order
