"""Send a notification exactly once per (correlation id, event type, channel)."""

import structlog

from notifications.channel import ProviderRegistry
from notifications.channel.port import NotificationProvider
from notifications.notification.notification import Notification, NotificationStatus
from shared.idempotency import IdempotencyGuard
from shared.retry import Outcome
from shared.store import EntityStore

logger = structlog.get_logger(__name__)


def send_with(provider: NotificationProvider, notification: Notification) -> Outcome:
    result = provider.send(notification)
    if result.success:
        return Outcome(
            succeeded=True,
            response={"provider": provider.name, "message_id": result.message_id, **result.metadata},
        )
    return Outcome(succeeded=False, error=result.error or "Delivery failed")


def deliver(providers: ProviderRegistry, notification: Notification) -> Outcome:
    """Deliver through the channel's provider; raises ``ProviderError`` if it is unusable."""
    return send_with(providers.get(notification.channel), notification)


class NotificationSender:
    def __init__(self, store: EntityStore, providers: ProviderRegistry) -> None:
        self.store = store
        self.providers = providers
        self.guard = IdempotencyGuard(store)

    def send(
        self,
        correlation_id: str,
        event_type: str,
        channel: str,
        recipient_id: str,
        message: str,
        subject: str | None = None,
        recipient_email: str | None = None,
        recipient_phone: str | None = None,
        recipient_webhook_url: str | None = None,
        context_data: dict | None = None,
    ) -> Notification:
        """Create the notification and attempt delivery once.

        A notification that already exists for the same key is returned as
        is, unless it is still PENDING, in which case delivery is resumed.
        Raises ``BusinessValidationError`` when the recipient data does not
        fit the channel; provider failures are recorded on the notification.
        """
        existing = self.guard.find_existing(correlation_id, event_type, channel)
        if existing is not None and existing.status != NotificationStatus.PENDING.value:
            logger.info(
                "notification_duplicate",
                notification_id=str(existing.id),
                event_type=event_type,
                channel=channel,
                status=existing.status,
            )
            return existing

        if existing is None:
            notification, created = self.guard.claim(
                Notification.create(
                    correlation_id=correlation_id,
                    event_type=event_type,
                    channel=channel,
                    recipient_id=recipient_id,
                    message=message,
                    subject=subject,
                    recipient_email=recipient_email,
                    recipient_phone=recipient_phone,
                    recipient_webhook_url=recipient_webhook_url,
                    context_data=context_data,
                )
            )
            if not created:
                return notification
        else:
            notification = existing
            logger.info("notification_attempt_resumed", notification_id=str(notification.id))

        self._attempt(notification)
        return notification

    def _attempt(self, notification: Notification) -> None:
        try:
            provider = self.providers.get(notification.channel)
            notification.mark_processing(provider.name)
            outcome = send_with(provider, notification)
            if outcome.succeeded:
                notification.mark_succeeded(outcome.response)
            else:
                notification.mark_failed(outcome.error)
        except Exception as exc:
            logger.warning(
                "notification_provider_error",
                notification_id=str(notification.id),
                channel=notification.channel,
                error=str(exc),
            )
            notification.mark_failed(str(exc))
        finally:
            self.store.save(notification)

        logger.info(
            "notification_attempted",
            notification_id=str(notification.id),
            event_type=notification.event_type,
            channel=notification.channel,
            status=notification.status,
        )
