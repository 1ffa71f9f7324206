"""Events published by the payments service."""

from typing import Any, ClassVar, Literal

from pydantic import Field

from shared.events.base import DomainEvent, WireModel


class PaymentSucceededPayload(WireModel):
    payment_id: str = Field(min_length=1)
    order_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    amount: float
    currency: str
    provider_ref: str | None = None
    provider_response: dict[str, Any] | None = None


class PaymentSucceeded(DomainEvent):
    EVENT_TYPE: ClassVar[str] = "payment.succeeded"

    event_type: Literal["payment.succeeded"] = "payment.succeeded"
    payload: PaymentSucceededPayload


class PaymentFailedPayload(WireModel):
    payment_id: str = Field(min_length=1)
    order_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    amount: float
    currency: str
    reason: str
    attempt: int = Field(ge=0)
    can_retry: bool
    customer_email: str | None = None


class PaymentFailed(DomainEvent):
    EVENT_TYPE: ClassVar[str] = "payment.failed"

    event_type: Literal["payment.failed"] = "payment.failed"
    payload: PaymentFailedPayload


class PaymentRetryingPayload(WireModel):
    payment_id: str = Field(min_length=1)
    order_id: str = Field(min_length=1)
    attempt: int = Field(ge=1)


class PaymentRetrying(DomainEvent):
    EVENT_TYPE: ClassVar[str] = "payment.retrying"

    event_type: Literal["payment.retrying"] = "payment.retrying"
    payload: PaymentRetryingPayload


class PaymentCancelledPayload(WireModel):
    payment_id: str = Field(min_length=1)
    order_id: str = Field(min_length=1)
    reason: str


class PaymentCancelled(DomainEvent):
    EVENT_TYPE: ClassVar[str] = "payment.cancelled"

    event_type: Literal["payment.cancelled"] = "payment.cancelled"
    payload: PaymentCancelledPayload
