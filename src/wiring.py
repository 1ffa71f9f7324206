"""Process wiring: builds each service from the environment.

Connections, stores and providers are created here once per process and
injected into the services; nothing below this module reaches for globals.
"""

import os

import structlog

from eventbus.connection import BrokerConnection
from eventbus.publisher import RabbitEventPublisher
from eventbus.settings import BrokerSettings

logger = structlog.get_logger(__name__)

SERVICES = ("ordering", "payments", "notifications")
DEFAULT_STORE_URL = "memory://"


def store_url() -> str:
    return os.getenv("STORE_URL", DEFAULT_STORE_URL)


def get_domain(name: str):
    """Import and initialize a service's domain by name."""
    if name == "ordering":
        from ordering.domain import ordering

        domain = ordering
    elif name == "payments":
        from payments.domain import payments

        domain = payments
    elif name == "notifications":
        from notifications.domain import notifications

        domain = notifications
    else:
        raise ValueError(f"Unknown service: {name}")

    domain.init()
    return domain


def get_store(name: str, url: str | None = None):
    url = url or store_url()
    if name == "ordering":
        from ordering.service import order_store

        return order_store(url)
    if name == "payments":
        from payments.service import payment_store

        return payment_store(url)
    if name == "notifications":
        from notifications.service import notification_store

        return notification_store(url)
    raise ValueError(f"Unknown service: {name}")


def build_publisher(settings: BrokerSettings) -> RabbitEventPublisher:
    publisher = RabbitEventPublisher(
        BrokerConnection(settings.url),
        settings.exchange,
        confirm_delivery=settings.publisher_confirms,
    )
    publisher.connect()
    return publisher


def build_providers():
    """In-memory providers, with real HTTP delivery for webhooks when ``WEBHOOK_DELIVERY=http``."""
    from notifications.channel import fake_registry
    from notifications.channel.webhook import HttpWebhookProvider

    providers = fake_registry()
    if os.getenv("WEBHOOK_DELIVERY", "fake") == "http":
        providers.register(HttpWebhookProvider())
    return providers


def build_service(name: str, settings: BrokerSettings):
    """Return ``(service, publisher)``; notifications publish nothing, so its publisher is ``None``."""
    store = get_store(name)

    if name == "ordering":
        from ordering.service import OrderingService

        publisher = build_publisher(settings)
        return OrderingService(store, publisher), publisher
    if name == "payments":
        from payments.gateway.fake_adapter import FakeGateway
        from payments.service import PaymentsService

        publisher = build_publisher(settings)
        return PaymentsService(store, FakeGateway(), publisher), publisher
    if name == "notifications":
        from notifications.service import NotificationsService

        return NotificationsService(store, build_providers()), None
    raise ValueError(f"Unknown service: {name}")
