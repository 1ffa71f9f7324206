"""Translate payment state into the ``payment.*`` events other services consume."""

import json

import structlog

from eventbus.publisher import EventPublisher
from payments.payment.payment import Payment, PaymentStatus
from shared.events.payments import PaymentCancelled, PaymentFailed, PaymentRetrying, PaymentSucceeded
from shared.events.registry import build_event

logger = structlog.get_logger(__name__)


def publish_outcome(publisher: EventPublisher, payment: Payment) -> None:
    """Announce a settled attempt. Payments in any other status are ignored."""
    if payment.status == PaymentStatus.SUCCEEDED.value:
        event = build_event(
            PaymentSucceeded,
            payment.correlation_id,
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            user_id=payment.user_id,
            amount=payment.amount,
            currency=payment.currency,
            provider_ref=payment.provider_ref,
            provider_response=json.loads(payment.provider_response) if payment.provider_response else None,
        )
    elif payment.status == PaymentStatus.FAILED.value:
        event = build_event(
            PaymentFailed,
            payment.correlation_id,
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            user_id=payment.user_id,
            amount=payment.amount,
            currency=payment.currency,
            reason=payment.last_error or "Payment failed",
            attempt=payment.retries or 0,
            can_retry=payment.can_retry(),
            customer_email=payment.customer_email,
        )
    else:
        logger.debug("payment_outcome_not_settled", payment_id=str(payment.id), status=payment.status)
        return
    publisher.publish(event)


def publish_retrying(publisher: EventPublisher, payment: Payment) -> None:
    publisher.publish(
        build_event(
            PaymentRetrying,
            payment.correlation_id,
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            attempt=payment.retries,
        )
    )


def publish_cancelled(publisher: EventPublisher, payment: Payment) -> None:
    publisher.publish(
        build_event(
            PaymentCancelled,
            payment.correlation_id,
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            reason=payment.cancellation_reason or "",
        )
    )
