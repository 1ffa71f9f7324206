"""Order aggregate — a customer's order and the state of its payment.

State Machine:
    PENDING → AWAITING_PAYMENT → PAID
    AWAITING_PAYMENT → PAYMENT_FAILED → RETRYING → PAID/PAYMENT_FAILED
    any non-terminal → CANCELLED

The order only records what the payments service reports; it never charges
anything itself.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Integer, String, Text

from ordering.domain import ordering
from shared.errors import BusinessValidationError
from shared.idempotency import idempotency_key
from shared.lifecycle import Lifecycle

REQUEST_EVENT_TYPE = "order.created"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    PAYMENT_FAILED = "payment_failed"
    RETRYING = "retrying"
    CANCELLED = "cancelled"


ORDER_LIFECYCLE = Lifecycle(
    OrderStatus,
    pending=OrderStatus.PENDING,
    processing=OrderStatus.AWAITING_PAYMENT,
    succeeded=OrderStatus.PAID,
    failed=OrderStatus.PAYMENT_FAILED,
    retrying=OrderStatus.RETRYING,
    cancelled=OrderStatus.CANCELLED,
)


def _validate_items(items) -> list[str]:
    if not items:
        return ["Order must contain at least one item"]
    problems = []
    for index, item in enumerate(items):
        if not item.get("product_id"):
            problems.append(f"Item {index} has no product id")
        if not isinstance(item.get("quantity"), int) or item["quantity"] <= 0:
            problems.append(f"Item {index} must have a positive quantity")
        if item.get("unit_price") is None or item["unit_price"] < 0:
            problems.append(f"Item {index} must have a non-negative unit price")
    return problems


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    """An order placed by a user, tracked until its payment settles."""

    correlation_id: String(max_length=255, required=True)
    idempotency_key: String(max_length=600, required=True, unique=True)

    user_id: String(max_length=255, required=True)
    customer_email: String(max_length=320)
    items: Text(required=True)  # JSON list of {product_id, quantity, unit_price}
    total_amount: Float(required=True)
    currency: String(max_length=3, default="USD")
    merchant_id: String(max_length=255)
    merchant_webhook_url: String(max_length=2048)

    status: String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    retries: Integer(default=0)
    last_error: Text()
    provider_ref: String(max_length=255)  # id of the order.created event
    provider_response: Text()  # JSON
    payment_reference: String(max_length=255)
    cancellation_reason: String(max_length=500)
    status_history: Text()  # JSON list of status changes

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
        user_id,
        items,
        currency="USD",
        customer_email=None,
        merchant_id=None,
        merchant_webhook_url=None,
    ):
        """Create a new order in PENDING status; the total is computed from the items."""
        errors = {}
        if not correlation_id:
            errors["correlation_id"] = ["Correlation id is required"]
        if not user_id:
            errors["user_id"] = ["User id is required"]
        item_problems = _validate_items(items)
        if item_problems:
            errors["items"] = item_problems
        if not currency or len(currency) != 3:
            errors["currency"] = ["Currency must be a three letter ISO code"]
        if errors:
            raise BusinessValidationError(errors)

        total = round(sum(item["quantity"] * item["unit_price"] for item in items), 2)
        now = datetime.now(UTC)
        return cls(
            correlation_id=correlation_id,
            idempotency_key=idempotency_key(correlation_id, REQUEST_EVENT_TYPE),
            user_id=user_id,
            customer_email=customer_email,
            items=json.dumps(items),
            total_amount=total,
            currency=currency.upper(),
            merchant_id=merchant_id,
            merchant_webhook_url=merchant_webhook_url,
            status=OrderStatus.PENDING.value,
            retries=0,
            created_at=now,
            updated_at=now,
        )

    @property
    def item_list(self) -> list[dict]:
        return json.loads(self.items) if self.items else []

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def change_status(self, target_status: OrderStatus, changed_by="system", reason=None) -> None:
        ORDER_LIFECYCLE.change_status(self, target_status, changed_by=changed_by, reason=reason)

    def mark_processing(self, provider_ref) -> None:
        """The order was announced and now waits for its payment."""
        ORDER_LIFECYCLE.mark_processing(self, provider_ref)

    def mark_succeeded(self, provider_response=None) -> None:
        ORDER_LIFECYCLE.mark_succeeded(self, provider_response)

    def mark_paid(self, payment_id, provider_response=None) -> None:
        ORDER_LIFECYCLE.mark_succeeded(self, provider_response)
        self.payment_reference = payment_id

    def mark_failed(self, reason) -> None:
        ORDER_LIFECYCLE.mark_failed(self, reason)

    def mark_retrying(self) -> None:
        ORDER_LIFECYCLE.mark_retrying(self)

    def increment_retry(self) -> None:
        ORDER_LIFECYCLE.increment_retry(self)

    def cancel(self, reason, changed_by="system") -> None:
        ORDER_LIFECYCLE.cancel(self, reason, changed_by)

    # -------------------------------------------------------------------
    # Predicates
    # -------------------------------------------------------------------
    def can_retry(self) -> bool:
        return ORDER_LIFECYCLE.can_retry(self)

    def is_terminal(self) -> bool:
        return ORDER_LIFECYCLE.is_terminal(self)

    def can_be_modified(self) -> bool:
        return ORDER_LIFECYCLE.can_be_modified(self)

    @property
    def history(self) -> list[dict]:
        """Status changes, oldest first."""
        return ORDER_LIFECYCLE.history(self)
