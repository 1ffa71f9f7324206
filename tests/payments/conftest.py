import pytest
from eventbus.fake_broker import RecordingPublisher
from payments.gateway.fake_adapter import FakeGateway
from payments.payment.payment import Payment
from payments.service import PaymentsService
from shared.events.ordering import OrderCancelled, OrderCreated
from shared.events.registry import build_event
from shared.store import MemoryStore


@pytest.fixture(autouse=True)
def _ctx(payments_bed):
    with payments_bed.domain_context():
        yield


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def store():
    return MemoryStore(Payment)


@pytest.fixture
def service(store, gateway, publisher):
    return PaymentsService(store=store, gateway=gateway, publisher=publisher)


@pytest.fixture
def order_created():
    """Factory for ``order.created`` events as the ordering service emits them."""

    def _build(correlation_id="corr-1", **overrides):
        payload = {
            "order_id": "o1",
            "user_id": "u1",
            "total_amount": 59.98,
            "currency": "USD",
            "items": [{"product_id": "prod-001", "quantity": 2, "unit_price": 29.99}],
            "customer_email": "jane@example.com",
        }
        payload.update(overrides)
        return build_event(OrderCreated, correlation_id, **payload)

    return _build


@pytest.fixture
def order_cancelled():
    def _build(correlation_id="corr-1", **overrides):
        payload = {"order_id": "o1", "user_id": "u1", "reason": "Customer changed their mind"}
        payload.update(overrides)
        return build_event(OrderCancelled, correlation_id, **payload)

    return _build
