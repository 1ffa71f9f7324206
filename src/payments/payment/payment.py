"""Payment aggregate — one charge attempt chain for one order.

State Machine:
    PENDING → PROCESSING → SUCCEEDED
    PENDING/PROCESSING → FAILED → RETRYING → SUCCEEDED/FAILED (max 3 retries)
    any non-terminal → CANCELLED

A payment is keyed by the correlation id of the ``order.created`` event that
requested it, so a redelivered request never charges twice.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from payments.domain import payments
from shared.errors import BusinessValidationError
from shared.idempotency import idempotency_key
from shared.lifecycle import Lifecycle

REQUEST_EVENT_TYPE = "order.created"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PaymentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RETRYING = "retrying"
    CANCELLED = "cancelled"


class PaymentMethod(Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"


PAYMENT_LIFECYCLE = Lifecycle(
    PaymentStatus,
    pending=PaymentStatus.PENDING,
    processing=PaymentStatus.PROCESSING,
    succeeded=PaymentStatus.SUCCEEDED,
    failed=PaymentStatus.FAILED,
    retrying=PaymentStatus.RETRYING,
    cancelled=PaymentStatus.CANCELLED,
)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@payments.aggregate
class Payment:
    correlation_id: String(max_length=255, required=True)
    event_type: String(max_length=100, default=REQUEST_EVENT_TYPE)
    idempotency_key: String(max_length=600, required=True, unique=True)

    order_id: Identifier(required=True)
    user_id: String(max_length=255, required=True)
    customer_email: String(max_length=320)
    amount: Float(required=True)
    currency: String(max_length=3, default="USD")
    method: String(choices=PaymentMethod, default=PaymentMethod.CREDIT_CARD.value)

    status: String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    retries: Integer(default=0)
    last_error: Text()
    provider_ref: String(max_length=255)
    provider_response: Text()  # JSON
    cancellation_reason: String(max_length=500)
    status_history: Text()  # JSON list of status changes

    created_at: DateTime()
    updated_at: DateTime()
    completed_at: DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        correlation_id,
        order_id,
        user_id,
        amount,
        currency="USD",
        method=PaymentMethod.CREDIT_CARD.value,
        customer_email=None,
    ):
        """Create a payment in PENDING status."""
        errors = {}
        if not correlation_id:
            errors["correlation_id"] = ["Correlation id is required"]
        if not order_id:
            errors["order_id"] = ["Order id is required"]
        if not user_id:
            errors["user_id"] = ["User id is required"]
        if amount is None or amount <= 0:
            errors["amount"] = ["Payment amount must be greater than zero"]
        if not currency or len(currency) != 3:
            errors["currency"] = ["Currency must be a three letter ISO code"]
        if method not in {m.value for m in PaymentMethod}:
            errors["method"] = [f"Unsupported payment method {method!r}"]
        if errors:
            raise BusinessValidationError(errors)

        now = datetime.now(UTC)
        return cls(
            correlation_id=correlation_id,
            event_type=REQUEST_EVENT_TYPE,
            idempotency_key=idempotency_key(correlation_id, REQUEST_EVENT_TYPE),
            order_id=order_id,
            user_id=user_id,
            customer_email=customer_email,
            amount=amount,
            currency=currency.upper(),
            method=method,
            status=PaymentStatus.PENDING.value,
            retries=0,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def change_status(self, target_status: PaymentStatus, changed_by="system", reason=None) -> None:
        PAYMENT_LIFECYCLE.change_status(self, target_status, changed_by=changed_by, reason=reason)

    def mark_processing(self, provider_ref) -> None:
        """Hand the charge to the gateway under ``provider_ref``."""
        PAYMENT_LIFECYCLE.mark_processing(self, provider_ref)

    def mark_succeeded(self, provider_response=None) -> None:
        PAYMENT_LIFECYCLE.mark_succeeded(self, provider_response)

    def mark_failed(self, reason) -> None:
        PAYMENT_LIFECYCLE.mark_failed(self, reason)

    def mark_retrying(self) -> None:
        PAYMENT_LIFECYCLE.mark_retrying(self)

    def increment_retry(self) -> None:
        PAYMENT_LIFECYCLE.increment_retry(self)

    def cancel(self, reason, changed_by="system") -> None:
        PAYMENT_LIFECYCLE.cancel(self, reason, changed_by)

    # -------------------------------------------------------------------
    # Predicates
    # -------------------------------------------------------------------
    def can_retry(self) -> bool:
        return PAYMENT_LIFECYCLE.can_retry(self)

    def is_terminal(self) -> bool:
        return PAYMENT_LIFECYCLE.is_terminal(self)

    def can_be_modified(self) -> bool:
        return PAYMENT_LIFECYCLE.can_be_modified(self)

    @property
    def history(self) -> list[dict]:
        """Status changes, oldest first."""
        return PAYMENT_LIFECYCLE.history(self)
