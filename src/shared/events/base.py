"""Envelope shared by every event that crosses a service boundary.

On the wire events are UTF-8 JSON objects with camelCase keys::

    {
      "eventType": "order.created",
      "eventId": "0b0c...",
      "timestamp": "2026-01-01T00:00:00Z",
      "correlationId": "c-123",
      "payload": {...}
    }
"""

from datetime import UTC, datetime
from typing import ClassVar
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Frozen model that reads and writes camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class DomainEvent(WireModel):
    """Base envelope. Subclasses pin ``event_type`` and give ``payload`` a type."""

    EVENT_TYPE: ClassVar[str] = ""

    event_type: str
    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    correlation_id: str = Field(min_length=1)
    payload: WireModel

    def to_json(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")
