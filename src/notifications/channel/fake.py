"""Fake providers — record notifications in memory for testing and development."""

from uuid import uuid4

from notifications.channel.port import DeliveryResult, NotificationProvider
from notifications.notification.notification import NotificationChannel
from shared.errors import ProviderError


class FakeProvider(NotificationProvider):
    """Provider that records messages in memory for test assertions."""

    channel = ""
    prefix = "msg"

    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Delivery failed"
        self.available = True
        self.raise_error = False

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Delivery failed",
        available: bool = True,
        raise_error: bool = False,
    ) -> None:
        """Configure the fake provider behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.available = available
        self.raise_error = raise_error

    def is_available(self) -> bool:
        return self.available

    def send(self, notification) -> DeliveryResult:
        if self.raise_error:
            raise ProviderError(self.failure_reason)
        if not self.should_succeed:
            return DeliveryResult(success=False, error=self.failure_reason)

        message_id = f"{self.prefix}-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "message_id": message_id,
                "notification_id": str(notification.id),
                "recipient": self.recipient_of(notification),
                "subject": notification.subject,
                "body": notification.message,
            }
        )
        return DeliveryResult(success=True, message_id=message_id, metadata={"provider": self.name})

    def recipient_of(self, notification) -> str | None:
        return notification.recipient_id

    def reset(self) -> None:
        """Clear sent messages (useful between tests)."""
        self.sent.clear()
        self.configure()


class FakeEmailProvider(FakeProvider):
    channel = NotificationChannel.EMAIL.value
    prefix = "email"

    def recipient_of(self, notification) -> str | None:
        return notification.recipient_email


class FakeSmsProvider(FakeProvider):
    channel = NotificationChannel.SMS.value
    prefix = "sms"

    def recipient_of(self, notification) -> str | None:
        return notification.recipient_phone


class FakePushProvider(FakeProvider):
    channel = NotificationChannel.PUSH.value
    prefix = "push"


class FakeWebhookProvider(FakeProvider):
    channel = NotificationChannel.WEBHOOK.value
    prefix = "webhook"

    def recipient_of(self, notification) -> str | None:
        return notification.recipient_webhook_url
