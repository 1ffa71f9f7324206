"""Notification aggregate — tracks the delivery of one message on one channel.

Each notification represents a single message sent to a recipient via a
specific channel. Notifications are created reactively from cross-service
events and delivered through channel providers (email, SMS, push, webhook).

State Machine:
    PENDING → SENDING → SENT
    PENDING/SENDING → FAILED → RETRYING → SENT/FAILED (max 3 retries)
    any non-terminal → CANCELLED
"""

import json
import re
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Integer, String, Text

from notifications.domain import notifications
from shared.errors import BusinessValidationError
from shared.idempotency import idempotency_key
from shared.lifecycle import Lifecycle

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+[1-9]\d{1,14}$")  # E.164
_URL_RE = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class NotificationChannel(Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    WEBHOOK = "webhook"


class NotificationStatus(Enum):
    PENDING = "pending"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"
    RETRYING = "retrying"
    CANCELLED = "cancelled"


NOTIFICATION_LIFECYCLE = Lifecycle(
    NotificationStatus,
    pending=NotificationStatus.PENDING,
    processing=NotificationStatus.SENDING,
    succeeded=NotificationStatus.SENT,
    failed=NotificationStatus.FAILED,
    retrying=NotificationStatus.RETRYING,
    cancelled=NotificationStatus.CANCELLED,
)


def _recipient_errors(channel, recipient_email, recipient_phone, recipient_webhook_url) -> dict:
    if channel == NotificationChannel.EMAIL.value:
        if not recipient_email:
            return {"recipient_email": ["Recipient email is required for email notifications"]}
        if not _EMAIL_RE.match(recipient_email):
            return {"recipient_email": [f"Invalid email address: {recipient_email}"]}
    elif channel == NotificationChannel.SMS.value:
        if not recipient_phone:
            return {"recipient_phone": ["Recipient phone is required for SMS notifications"]}
        if not _PHONE_RE.match(recipient_phone):
            return {"recipient_phone": [f"Invalid phone number (E.164 expected): {recipient_phone}"]}
    elif channel == NotificationChannel.WEBHOOK.value:
        if not recipient_webhook_url:
            return {"recipient_webhook_url": ["Webhook URL is required for webhook notifications"]}
        if not _URL_RE.match(recipient_webhook_url):
            return {"recipient_webhook_url": [f"Invalid webhook URL: {recipient_webhook_url}"]}
    return {}


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@notifications.aggregate
class Notification:
    """A single notification dispatched to a recipient via a channel.

    The idempotency key is built from the correlation id, the triggering
    event type and the channel, so one event produces at most one message
    per channel no matter how often it is delivered.
    """

    # Source event correlation
    correlation_id: String(max_length=255, required=True)
    event_type: String(max_length=100, required=True)
    idempotency_key: String(max_length=600, required=True, unique=True)

    # Channel and recipient
    channel: String(choices=NotificationChannel, required=True)
    recipient_id: String(max_length=255, required=True)
    recipient_email: String(max_length=320)
    recipient_phone: String(max_length=20)
    recipient_webhook_url: String(max_length=2048)

    # Content
    subject: String(max_length=500)
    message: Text(required=True)
    context_data: Text()  # JSON — data used to render the template

    # Status
    status: String(choices=NotificationStatus, default=NotificationStatus.PENDING.value)
    retries: Integer(default=0)
    last_error: Text()
    provider_ref: String(max_length=255)
    provider_response: Text()  # JSON
    cancellation_reason: String(max_length=500)
    status_history: Text()  # JSON list of status changes

    # Timestamps
    created_at: DateTime()
    updated_at: DateTime()
    completed_at: DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        correlation_id,
        event_type,
        channel,
        recipient_id,
        message,
        subject=None,
        recipient_email=None,
        recipient_phone=None,
        recipient_webhook_url=None,
        context_data=None,
    ):
        """Create a new notification in PENDING status.

        Raises ``BusinessValidationError`` when a required field is missing or
        the recipient data does not fit the channel.
        """
        errors = {}
        if not correlation_id:
            errors["correlation_id"] = ["Correlation id is required"]
        if not event_type:
            errors["event_type"] = ["Event type is required"]
        if not recipient_id:
            errors["recipient_id"] = ["Recipient id is required"]
        if not message:
            errors["message"] = ["Message is required"]
        if channel not in {c.value for c in NotificationChannel}:
            errors["channel"] = [f"Unsupported channel {channel!r}"]
        else:
            errors.update(_recipient_errors(channel, recipient_email, recipient_phone, recipient_webhook_url))
        if errors:
            raise BusinessValidationError(errors)

        now = datetime.now(UTC)
        return cls(
            correlation_id=correlation_id,
            event_type=event_type,
            idempotency_key=idempotency_key(correlation_id, event_type, channel),
            channel=channel,
            recipient_id=recipient_id,
            recipient_email=recipient_email,
            recipient_phone=recipient_phone,
            recipient_webhook_url=recipient_webhook_url,
            subject=subject,
            message=message,
            context_data=json.dumps(context_data, default=str) if context_data is not None else None,
            status=NotificationStatus.PENDING.value,
            retries=0,
            created_at=now,
            updated_at=now,
        )

    @property
    def context(self) -> dict:
        return json.loads(self.context_data) if self.context_data else {}

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def change_status(self, target_status: NotificationStatus, changed_by="system", reason=None) -> None:
        NOTIFICATION_LIFECYCLE.change_status(self, target_status, changed_by=changed_by, reason=reason)

    def mark_processing(self, provider_ref) -> None:
        """Hand the notification to a channel provider."""
        NOTIFICATION_LIFECYCLE.mark_processing(self, provider_ref)

    def mark_succeeded(self, provider_response=None) -> None:
        NOTIFICATION_LIFECYCLE.mark_succeeded(self, provider_response)

    def mark_failed(self, reason) -> None:
        NOTIFICATION_LIFECYCLE.mark_failed(self, reason)

    def mark_retrying(self) -> None:
        NOTIFICATION_LIFECYCLE.mark_retrying(self)

    def increment_retry(self) -> None:
        NOTIFICATION_LIFECYCLE.increment_retry(self)

    def cancel(self, reason, changed_by="system") -> None:
        NOTIFICATION_LIFECYCLE.cancel(self, reason, changed_by)

    # -------------------------------------------------------------------
    # Predicates
    # -------------------------------------------------------------------
    def can_retry(self) -> bool:
        return NOTIFICATION_LIFECYCLE.can_retry(self)

    def is_terminal(self) -> bool:
        return NOTIFICATION_LIFECYCLE.is_terminal(self)

    def can_be_modified(self) -> bool:
        return NOTIFICATION_LIFECYCLE.can_be_modified(self)

    @property
    def history(self) -> list[dict]:
        """Status changes, oldest first."""
        return NOTIFICATION_LIFECYCLE.history(self)
