"""Handlers for ordering events consumed by the payments service."""

import structlog

from eventbus.handlers import HandlerSet
from payments.payment.cancellation import PaymentCancellation
from payments.payment.initiation import PaymentInitiator
from shared.events.ordering import OrderCancelled, OrderCreated

logger = structlog.get_logger(__name__)


class OrderingEventsHandler:
    def __init__(self, initiator: PaymentInitiator, cancellation: PaymentCancellation) -> None:
        self.initiator = initiator
        self.cancellation = cancellation

    def on_order_created(self, event: OrderCreated) -> None:
        logger.info("order_created_received", order_id=event.payload.order_id, amount=event.payload.amount_due)
        self.initiator.initiate(event)

    def on_order_cancelled(self, event: OrderCancelled) -> None:
        logger.info("order_cancelled_received", order_id=event.payload.order_id)
        self.cancellation.cancel_for_order(event)

    def handler_set(self) -> HandlerSet:
        handlers = HandlerSet()
        handlers.register(OrderCreated, self.on_order_created)
        handlers.register(OrderCancelled, self.on_order_cancelled)
        return handlers
