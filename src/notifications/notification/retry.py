"""Business retry of failed notifications."""

from functools import partial

from notifications.channel import ProviderRegistry
from notifications.notification.notification import NOTIFICATION_LIFECYCLE
from notifications.notification.sending import deliver
from shared.retry import RetryController
from shared.store import EntityStore


def build_retry_controller(store: EntityStore, providers: ProviderRegistry) -> RetryController:
    return RetryController(store, NOTIFICATION_LIFECYCLE, partial(deliver, providers))
