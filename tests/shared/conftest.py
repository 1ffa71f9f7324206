import pytest
from notifications.notification.notification import NOTIFICATION_LIFECYCLE, Notification
from ordering.order.order import ORDER_LIFECYCLE, Order
from payments.payment.payment import PAYMENT_LIFECYCLE, Payment


def make_order(correlation_id="corr-001"):
    return Order.create(
        correlation_id=correlation_id,
        user_id="user-001",
        items=[{"product_id": "prod-001", "quantity": 2, "unit_price": 25.0}],
        customer_email="jane@example.com",
    )


def make_payment(correlation_id="corr-001"):
    return Payment.create(
        correlation_id=correlation_id,
        order_id="ord-001",
        user_id="user-001",
        amount=50.0,
    )


def make_notification(correlation_id="corr-001"):
    return Notification.create(
        correlation_id=correlation_id,
        event_type="order.created",
        channel="email",
        recipient_id="user-001",
        recipient_email="jane@example.com",
        message="Your order was received",
    )


_KINDS = {
    "order": ("ordering_bed", make_order, ORDER_LIFECYCLE),
    "payment": ("payments_bed", make_payment, PAYMENT_LIFECYCLE),
    "notification": ("notifications_bed", make_notification, NOTIFICATION_LIFECYCLE),
}


@pytest.fixture(params=sorted(_KINDS))
def kind(request):
    """(factory, lifecycle) for each stateful aggregate, inside its domain context."""
    bed_name, factory, lifecycle = _KINDS[request.param]
    bed = request.getfixturevalue(bed_name)
    with bed.domain_context():
        yield factory, lifecycle


@pytest.fixture
def payment_ctx(payments_bed):
    with payments_bed.domain_context():
        yield


@pytest.fixture
def new_payment(payment_ctx):
    """Factory for pending payments, keyed by correlation id."""
    return make_payment
