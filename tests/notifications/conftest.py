import pytest
from notifications.channel import fake_registry
from notifications.notification.notification import Notification
from notifications.service import NotificationsService
from shared.store import MemoryStore


@pytest.fixture(autouse=True)
def _ctx(notifications_bed):
    with notifications_bed.domain_context():
        yield


@pytest.fixture
def providers():
    return fake_registry()


@pytest.fixture
def email_provider(providers):
    return providers.get("email")


@pytest.fixture
def webhook_provider(providers):
    return providers.get("webhook")


@pytest.fixture
def store():
    return MemoryStore(Notification)


@pytest.fixture
def service(store, providers):
    return NotificationsService(store=store, providers=providers)
