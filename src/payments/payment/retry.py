"""Business retry of failed payments.

Each retry is announced with ``payment.retrying`` before the gateway is
called, and its result with ``payment.succeeded`` or ``payment.failed``.
"""

from functools import partial

from eventbus.publisher import EventPublisher
from payments.gateway.port import PaymentGateway
from payments.payment.initiation import charge
from payments.payment.outcomes import publish_outcome, publish_retrying
from payments.payment.payment import PAYMENT_LIFECYCLE
from shared.retry import RetryController
from shared.store import EntityStore


def build_retry_controller(
    store: EntityStore, gateway: PaymentGateway, publisher: EventPublisher
) -> RetryController:
    return RetryController(
        store,
        PAYMENT_LIFECYCLE,
        partial(charge, gateway),
        on_retrying=partial(publish_retrying, publisher),
        on_outcome=partial(publish_outcome, publisher),
    )
