"""Handlers for payment events — tell the customer a charge did not go through."""

from notifications.notification.notification import NotificationChannel
from notifications.notification.sending import NotificationSender
from notifications.templates import get_template
from shared.events.payments import PaymentFailed


class PaymentEventsHandler:
    def __init__(self, sender: NotificationSender) -> None:
        self.sender = sender

    def on_payment_failed(self, event: PaymentFailed) -> None:
        payload = event.payload
        context = payload.model_dump(mode="json")
        content = get_template(event.event_type).render(context)
        self.sender.send(
            correlation_id=event.correlation_id,
            event_type=event.event_type,
            channel=NotificationChannel.EMAIL.value,
            recipient_id=payload.user_id,
            recipient_email=payload.customer_email,
            subject=content["subject"],
            message=content["body"],
            context_data=context,
        )
