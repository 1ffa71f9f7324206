"""Notification provider port — abstract interface for channel delivery."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class DeliveryResult:
    """Result of handing one notification to a provider."""

    success: bool
    message_id: str | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class NotificationProvider(ABC):
    """Delivers notifications for exactly one channel."""

    channel: str = ""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def send(self, notification) -> DeliveryResult:
        """Deliver ``notification``.

        A refused delivery is reported through ``DeliveryResult``; exceptions
        mean the provider itself could not be used.
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the provider is configured and can accept work right now."""
        ...
