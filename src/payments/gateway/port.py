"""Payment gateway port (abstract interface).

Defines the contract that payment gateway adapters implement. Use cases
receive a gateway through their constructor, so tests hand in a
``FakeGateway`` and production wiring hands in a real adapter.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ChargeResult:
    """Result of a payment charge attempt."""

    success: bool
    transaction_id: str | None = None
    status: str | None = None
    response: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name = "gateway"

    @abstractmethod
    def charge(
        self,
        amount: float,
        currency: str,
        method: str,
        idempotency_key: str,
    ) -> ChargeResult:
        """Charge ``amount`` once per ``idempotency_key``.

        A declined charge is reported through ``ChargeResult``; exceptions
        mean the gateway could not be reached.
        """
        ...
