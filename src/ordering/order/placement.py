"""Place an order and announce it with ``order.created``.

Placing is idempotent on the correlation id: calling ``place`` again with
the same correlation id returns the order already placed, and resumes the
announcement if the first call stopped before publishing.
"""

from uuid import uuid4

import structlog

from eventbus.publisher import EventPublisher
from ordering.order.order import REQUEST_EVENT_TYPE, Order, OrderStatus
from shared.events.ordering import OrderCreated
from shared.events.registry import build_event
from shared.idempotency import IdempotencyGuard
from shared.store import EntityStore

logger = structlog.get_logger(__name__)

_ANNOUNCEABLE = {OrderStatus.PENDING.value, OrderStatus.AWAITING_PAYMENT.value}


class OrderPlacement:
    def __init__(self, store: EntityStore, publisher: EventPublisher) -> None:
        self.store = store
        self.publisher = publisher
        self.guard = IdempotencyGuard(store)

    def place(
        self,
        user_id: str,
        items: list[dict],
        currency: str = "USD",
        customer_email: str | None = None,
        merchant_id: str | None = None,
        merchant_webhook_url: str | None = None,
        correlation_id: str | None = None,
    ) -> Order:
        """Create the order, publish ``order.created`` and wait for payment.

        The order is saved as AWAITING_PAYMENT before the event goes out, so
        a fast payment reply never races the save. If publishing fails the
        broker error propagates; placing again with the same correlation id
        publishes again, which the payments service deduplicates.
        """
        correlation_id = correlation_id or str(uuid4())
        existing = self.guard.find_existing(correlation_id, REQUEST_EVENT_TYPE)

        if existing is not None:
            if existing.status not in _ANNOUNCEABLE:
                logger.info("order_already_placed", order_id=str(existing.id), status=existing.status)
                return existing
            order = existing
        else:
            order, created = self.guard.claim(
                Order.create(
                    correlation_id=correlation_id,
                    user_id=user_id,
                    items=items,
                    currency=currency,
                    customer_email=customer_email,
                    merchant_id=merchant_id,
                    merchant_webhook_url=merchant_webhook_url,
                )
            )
            if not created:
                return order

        event = build_event(
            OrderCreated,
            order.correlation_id,
            order_id=str(order.id),
            user_id=order.user_id,
            total_amount=order.total_amount,
            currency=order.currency,
            items=order.item_list,
            customer_email=order.customer_email,
            merchant_id=order.merchant_id,
            merchant_webhook_url=order.merchant_webhook_url,
        )
        if order.status == OrderStatus.PENDING.value:
            order.mark_processing(str(event.event_id))
            self.store.save(order)
        self.publisher.publish(event)

        logger.info(
            "order_placed",
            order_id=str(order.id),
            user_id=order.user_id,
            total_amount=order.total_amount,
            correlation_id=order.correlation_id,
        )
        return order
