"""Events published by the ordering service."""

from typing import ClassVar, Literal

from pydantic import Field

from shared.events.base import DomainEvent, WireModel


class OrderItem(WireModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    unit_price: float = Field(ge=0)


class OrderCreatedPayload(WireModel):
    order_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    total_amount: float | None = Field(default=None, ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    items: list[OrderItem] = Field(default_factory=list)
    customer_email: str | None = None
    merchant_id: str | None = None
    merchant_webhook_url: str | None = None

    @property
    def amount_due(self) -> float | None:
        """The announced total, else the sum of the item lines; ``None`` when neither is given."""
        if self.total_amount is not None:
            return self.total_amount
        if self.items:
            return round(sum(item.quantity * item.unit_price for item in self.items), 2)
        return None


class OrderCreated(DomainEvent):
    EVENT_TYPE: ClassVar[str] = "order.created"

    event_type: Literal["order.created"] = "order.created"
    payload: OrderCreatedPayload


class OrderPaidPayload(WireModel):
    order_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    payment_id: str = Field(min_length=1)
    total_amount: float
    currency: str
    customer_email: str | None = None


class OrderPaid(DomainEvent):
    EVENT_TYPE: ClassVar[str] = "order.paid"

    event_type: Literal["order.paid"] = "order.paid"
    payload: OrderPaidPayload


class OrderCancelledPayload(WireModel):
    order_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    reason: str
    customer_email: str | None = None


class OrderCancelled(DomainEvent):
    EVENT_TYPE: ClassVar[str] = "order.cancelled"

    event_type: Literal["order.cancelled"] = "order.cancelled"
    payload: OrderCancelledPayload
