"""HTTP webhook provider — POSTs the notification to the recipient's URL."""

from datetime import UTC, datetime

import requests
import structlog

from notifications.channel.port import DeliveryResult, NotificationProvider
from notifications.notification.notification import NotificationChannel

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 10


class HttpWebhookProvider(NotificationProvider):
    channel = NotificationChannel.WEBHOOK.value

    def __init__(self, session: requests.Session | None = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout

    def is_available(self) -> bool:
        return True

    def send(self, notification) -> DeliveryResult:
        if not notification.recipient_webhook_url:
            return DeliveryResult(success=False, error="Recipient webhook URL is required")

        try:
            response = self.session.post(
                notification.recipient_webhook_url,
                json={
                    "event": notification.event_type,
                    "data": notification.context,
                    "message": notification.message,
                    "correlationId": notification.correlation_id,
                    "timestamp": datetime.now(UTC).isoformat(),
                },
                headers={
                    "X-Event-Type": notification.event_type,
                    "X-Correlation-Id": notification.correlation_id,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("webhook_request_failed", url=notification.recipient_webhook_url, error=str(exc))
            return DeliveryResult(success=False, error=f"Webhook request failed: {exc}")

        if not response.ok:
            return DeliveryResult(
                success=False,
                error=f"Webhook returned HTTP {response.status_code}",
                metadata={"status_code": response.status_code},
            )

        return DeliveryResult(
            success=True,
            message_id=response.headers.get("X-Webhook-Id") or f"webhook-{notification.id}",
            metadata={"status_code": response.status_code},
        )
