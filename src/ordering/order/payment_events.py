"""Handlers for payment events consumed by the ordering service.

Events about an order that already reached a terminal status are late or
duplicate deliveries; they are logged and acknowledged.
"""

import structlog

from eventbus.handlers import HandlerSet
from eventbus.publisher import EventPublisher
from ordering.order.order import Order, OrderStatus
from shared.events.ordering import OrderPaid
from shared.events.payments import PaymentFailed, PaymentRetrying, PaymentSucceeded
from shared.events.registry import build_event
from shared.store import EntityStore

logger = structlog.get_logger(__name__)


class PaymentEventsHandler:
    def __init__(self, store: EntityStore, publisher: EventPublisher) -> None:
        self.store = store
        self.publisher = publisher

    def on_payment_succeeded(self, event: PaymentSucceeded) -> None:
        payload = event.payload
        order = self.store.get(payload.order_id)

        if order.is_terminal():
            self._ignore(order, event)
            # Publishing may have failed after the order was saved as paid
            if order.status == OrderStatus.PAID.value and order.payment_reference == payload.payment_id:
                self._publish_paid(order)
            return

        order.mark_paid(
            payload.payment_id,
            {"payment_id": payload.payment_id, "provider_ref": payload.provider_ref},
        )
        self.store.save(order)
        self._publish_paid(order)
        logger.info("order_paid", order_id=str(order.id), payment_id=payload.payment_id)

    def on_payment_failed(self, event: PaymentFailed) -> None:
        payload = event.payload
        order = self.store.get(payload.order_id)

        if order.is_terminal() or order.status == OrderStatus.PAYMENT_FAILED.value:
            self._ignore(order, event)
            return

        order.mark_failed(payload.reason)
        self.store.save(order)
        logger.info(
            "order_payment_failed",
            order_id=str(order.id),
            reason=payload.reason,
            can_retry=payload.can_retry,
        )

    def on_payment_retrying(self, event: PaymentRetrying) -> None:
        payload = event.payload
        order = self.store.get(payload.order_id)

        if order.is_terminal() or order.status == OrderStatus.RETRYING.value:
            self._ignore(order, event)
            return

        order.mark_retrying()
        order.increment_retry()
        self.store.save(order)
        logger.info("order_payment_retrying", order_id=str(order.id), attempt=payload.attempt)

    def handler_set(self) -> HandlerSet:
        handlers = HandlerSet()
        handlers.register(PaymentSucceeded, self.on_payment_succeeded)
        handlers.register(PaymentFailed, self.on_payment_failed)
        handlers.register(PaymentRetrying, self.on_payment_retrying)
        return handlers

    def _publish_paid(self, order: Order) -> None:
        self.publisher.publish(
            build_event(
                OrderPaid,
                order.correlation_id,
                order_id=str(order.id),
                user_id=order.user_id,
                payment_id=order.payment_reference,
                total_amount=order.total_amount,
                currency=order.currency,
                customer_email=order.customer_email,
            )
        )

    def _ignore(self, order: Order, event) -> None:
        logger.info(
            "payment_event_ignored",
            order_id=str(order.id),
            status=order.status,
            event_type=event.event_type,
            event_id=str(event.event_id),
        )
