"""Handlers for ordering events — customer emails and merchant webhooks."""

import structlog

from notifications.notification.notification import NotificationChannel
from notifications.notification.sending import NotificationSender
from notifications.templates import get_template
from notifications.templates.merchant_webhook import MerchantWebhookTemplate
from shared.events.ordering import OrderCancelled, OrderCreated, OrderPaid

logger = structlog.get_logger(__name__)

WEBHOOK_CORRELATION_SUFFIX = "-webhook"


class OrderingEventsHandler:
    def __init__(self, sender: NotificationSender) -> None:
        self.sender = sender

    def _email_customer(self, event, recipient_id: str, customer_email: str | None, **extra) -> None:
        context = {**event.payload.model_dump(mode="json"), **extra}
        content = get_template(event.event_type).render(context)
        self.sender.send(
            correlation_id=event.correlation_id,
            event_type=event.event_type,
            channel=NotificationChannel.EMAIL.value,
            recipient_id=recipient_id,
            recipient_email=customer_email,
            subject=content["subject"],
            message=content["body"],
            context_data=context,
        )

    def on_order_created(self, event: OrderCreated) -> None:
        payload = event.payload
        self._email_customer(event, payload.user_id, payload.customer_email, total_amount=payload.amount_due or 0.0)

        if payload.merchant_webhook_url:
            data = payload.model_dump(mode="json")
            content = MerchantWebhookTemplate.render({"event_type": event.event_type, "data": data})
            self.sender.send(
                correlation_id=f"{event.correlation_id}{WEBHOOK_CORRELATION_SUFFIX}",
                event_type=event.event_type,
                channel=NotificationChannel.WEBHOOK.value,
                recipient_id=payload.merchant_id or payload.order_id,
                recipient_webhook_url=payload.merchant_webhook_url,
                subject=content["subject"],
                message=content["body"],
                context_data=data,
            )

    def on_order_paid(self, event: OrderPaid) -> None:
        self._email_customer(event, event.payload.user_id, event.payload.customer_email)

    def on_order_cancelled(self, event: OrderCancelled) -> None:
        self._email_customer(event, event.payload.user_id, event.payload.customer_email)
