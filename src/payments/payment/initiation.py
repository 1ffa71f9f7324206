"""Initiate the payment for a newly created order.

Reacts to ``order.created``. The payment is keyed by the order's correlation
id, so a redelivered ``order.created`` finds the payment it already created
instead of charging again.
"""

from uuid import uuid4

import structlog

from eventbus.publisher import EventPublisher
from payments.gateway.port import PaymentGateway
from payments.payment.outcomes import publish_outcome
from payments.payment.payment import REQUEST_EVENT_TYPE, Payment, PaymentStatus
from shared.events.ordering import OrderCreated
from shared.idempotency import IdempotencyGuard
from shared.retry import Outcome
from shared.store import EntityStore

logger = structlog.get_logger(__name__)


def attempt_key(payment: Payment) -> str:
    """Gateway key of the current attempt; every business retry is a new charge."""
    return f"{payment.idempotency_key}|attempt-{payment.retries or 0}"


def charge(gateway: PaymentGateway, payment: Payment) -> Outcome:
    """Ask the gateway for the money; a decline is an unsuccessful ``Outcome``."""
    result = gateway.charge(
        amount=payment.amount,
        currency=payment.currency,
        method=payment.method,
        idempotency_key=attempt_key(payment),
    )
    if result.success:
        return Outcome(
            succeeded=True,
            response={
                "gateway": gateway.name,
                "transaction_id": result.transaction_id,
                "status": result.status,
                "message": result.response,
            },
        )
    return Outcome(succeeded=False, error=result.failure_reason or "Payment declined")


class PaymentInitiator:
    def __init__(self, store: EntityStore, gateway: PaymentGateway, publisher: EventPublisher) -> None:
        self.store = store
        self.gateway = gateway
        self.publisher = publisher
        self.guard = IdempotencyGuard(store)

    def initiate(self, event: OrderCreated) -> Payment:
        """Create and attempt the payment requested by ``event``."""
        payload = event.payload
        existing = self.guard.find_existing(event.correlation_id, REQUEST_EVENT_TYPE)

        if existing is None:
            payment, created = self.guard.claim(
                Payment.create(
                    correlation_id=event.correlation_id,
                    order_id=payload.order_id,
                    user_id=payload.user_id,
                    amount=payload.amount_due,
                    currency=payload.currency,
                    customer_email=payload.customer_email,
                )
            )
            if not created:
                return self._already_handled(payment)
        elif existing.status != PaymentStatus.PENDING.value:
            return self._already_handled(existing)
        else:
            payment = existing
            logger.info("payment_attempt_resumed", payment_id=str(payment.id), order_id=payload.order_id)

        self._attempt(payment)
        publish_outcome(self.publisher, payment)
        return payment

    def _attempt(self, payment: Payment) -> None:
        payment.mark_processing(f"{self.gateway.name}-{uuid4().hex[:12]}")
        self.store.save(payment)
        try:
            outcome = charge(self.gateway, payment)
            if outcome.succeeded:
                payment.mark_succeeded(outcome.response)
            else:
                payment.mark_failed(outcome.error)
        except Exception as exc:
            logger.warning("payment_gateway_error", payment_id=str(payment.id), error=str(exc))
            payment.mark_failed(f"Gateway error: {exc}")
        finally:
            self.store.save(payment)

        logger.info(
            "payment_attempted",
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            status=payment.status,
            amount=payment.amount,
            currency=payment.currency,
        )

    def _already_handled(self, payment: Payment) -> Payment:
        """Redelivered request: never charge again, but repeat a settled outcome.

        Announcing again covers a crash between saving the payment and
        publishing its outcome; consumers ignore the duplicate.
        """
        logger.info(
            "payment_request_duplicate",
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            status=payment.status,
        )
        publish_outcome(self.publisher, payment)
        return payment
