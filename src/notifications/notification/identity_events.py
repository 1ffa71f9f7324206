"""Handlers for identity events — welcome messages for new users."""

from notifications.notification.notification import NotificationChannel
from notifications.notification.sending import NotificationSender
from notifications.templates import get_template
from shared.events.identity import UserCreated


class IdentityEventsHandler:
    def __init__(self, sender: NotificationSender) -> None:
        self.sender = sender

    def on_user_created(self, event: UserCreated) -> None:
        payload = event.payload
        context = payload.model_dump()
        content = get_template(event.event_type).render(context)
        self.sender.send(
            correlation_id=event.correlation_id,
            event_type=event.event_type,
            channel=NotificationChannel.EMAIL.value,
            recipient_id=payload.user_id,
            recipient_email=payload.email,
            subject=content["subject"],
            message=content["body"],
            context_data=context,
        )
