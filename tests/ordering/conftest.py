import pytest
from eventbus.fake_broker import RecordingPublisher
from ordering.order.order import Order
from ordering.service import OrderingService
from shared.events.payments import PaymentFailed, PaymentRetrying, PaymentSucceeded
from shared.events.registry import build_event
from shared.store import MemoryStore


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def store():
    return MemoryStore(Order)


@pytest.fixture
def service(store, publisher):
    return OrderingService(store=store, publisher=publisher)


@pytest.fixture
def items():
    return [
        {"product_id": "prod-001", "quantity": 2, "unit_price": 29.99},
        {"product_id": "prod-002", "quantity": 1, "unit_price": 10.0},
    ]


@pytest.fixture
def placed_order(service, publisher, items):
    order = service.place_order(
        "user-001", items, customer_email="jane@example.com", correlation_id="corr-1"
    )
    publisher.events.clear()
    return order


@pytest.fixture
def payment_event(placed_order):
    """Factory for payment.* events about ``placed_order``."""

    def _build(event_cls, **overrides):
        base = {
            PaymentSucceeded: {
                "payment_id": "pay-001",
                "user_id": placed_order.user_id,
                "amount": placed_order.total_amount,
                "currency": placed_order.currency,
                "provider_ref": "fake-abc",
            },
            PaymentFailed: {
                "payment_id": "pay-001",
                "user_id": placed_order.user_id,
                "amount": placed_order.total_amount,
                "currency": placed_order.currency,
                "reason": "Card declined",
                "attempt": 0,
                "can_retry": True,
            },
            PaymentRetrying: {"payment_id": "pay-001", "attempt": 1},
        }[event_cls]
        payload = {"order_id": str(placed_order.id), **base, **overrides}
        return build_event(event_cls, placed_order.correlation_id, **payload)

    return _build
