"""Events published by the identity service and consumed here."""

from typing import ClassVar, Literal

from pydantic import Field

from shared.events.base import DomainEvent, WireModel


class UserCreatedPayload(WireModel):
    user_id: str = Field(min_length=1)
    email: str = Field(min_length=1)
    name: str | None = None


class UserCreated(DomainEvent):
    EVENT_TYPE: ClassVar[str] = "user.created"

    event_type: Literal["user.created"] = "user.created"
    payload: UserCreatedPayload
