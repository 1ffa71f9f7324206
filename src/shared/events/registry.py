"""Closed registry of wire events and the codec that maps bodies onto it."""

import json
from typing import Annotated, Any, Union, get_args

import pydantic

from eventbus.errors import MalformedMessage
from shared.events.base import DomainEvent
from shared.events.identity import UserCreated
from shared.events.ordering import OrderCancelled, OrderCreated, OrderPaid
from shared.events.payments import (
    PaymentCancelled,
    PaymentFailed,
    PaymentRetrying,
    PaymentSucceeded,
)

AnyEvent = Union[
    UserCreated,
    OrderCreated,
    OrderPaid,
    OrderCancelled,
    PaymentSucceeded,
    PaymentFailed,
    PaymentRetrying,
    PaymentCancelled,
]

EVENT_TYPES: dict[str, type[DomainEvent]] = {cls.EVENT_TYPE: cls for cls in get_args(AnyEvent)}

_EVENT_ADAPTER: pydantic.TypeAdapter = pydantic.TypeAdapter(
    Annotated[AnyEvent, pydantic.Field(discriminator="event_type")]
)


def build_event(event_cls: type[DomainEvent], correlation_id: str, **payload: Any) -> DomainEvent:
    """Create an event with a fresh id and timestamp.

    Raises ``ValueError`` when the correlation id is empty or the payload
    does not match the event's schema.
    """
    if not correlation_id:
        raise ValueError("correlation_id is required")
    try:
        return event_cls.model_validate({"correlation_id": correlation_id, "payload": payload})
    except pydantic.ValidationError as exc:
        raise ValueError(f"Invalid {event_cls.EVENT_TYPE} payload: {exc}") from exc


def parse_event(body: bytes | str) -> AnyEvent:
    """Decode a delivery body into one of the registered events.

    ``eventType`` selects the member of the union; an unknown or missing
    type fails the same way as a payload that breaks its schema.
    """
    try:
        raw = json.loads(body)
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedMessage(f"Body is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise MalformedMessage("Body must be a JSON object")

    try:
        return _EVENT_ADAPTER.validate_python(raw)
    except pydantic.ValidationError as exc:
        raise MalformedMessage(
            f"Invalid {raw.get('eventType', 'untyped')} event: {exc.error_count()} error(s)"
        ) from exc
