"""Cancel the open payments of an order that was cancelled."""

import structlog

from eventbus.publisher import EventPublisher
from payments.payment.outcomes import publish_cancelled
from payments.payment.payment import Payment
from shared.events.ordering import OrderCancelled
from shared.store import EntityStore

logger = structlog.get_logger(__name__)


class PaymentCancellation:
    def __init__(self, store: EntityStore, publisher: EventPublisher) -> None:
        self.store = store
        self.publisher = publisher

    def cancel_for_order(self, event: OrderCancelled) -> list[Payment]:
        """Cancel every non-terminal payment of the order and announce each one."""
        cancelled = []
        for payment in self.store.find_by(order_id=event.payload.order_id):
            if payment.is_terminal():
                logger.info(
                    "payment_cancel_skipped",
                    payment_id=str(payment.id),
                    order_id=str(payment.order_id),
                    status=payment.status,
                )
                continue
            payment.cancel(event.payload.reason)
            self.store.save(payment)
            publish_cancelled(self.publisher, payment)
            cancelled.append(payment)

        logger.info("payments_cancelled", order_id=event.payload.order_id, count=len(cancelled))
        return cancelled
