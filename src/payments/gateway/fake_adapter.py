"""Configurable fake payment gateway for development and testing.

Simulates a gateway without external calls. It can be told to approve,
decline or blow up, and it remembers every call it received. Like a real
gateway it settles each idempotency key once: a repeated key gets the
stored result back, whatever the gateway is configured to do now.
"""

from uuid import uuid4

from payments.gateway.port import ChargeResult, PaymentGateway
from shared.errors import ProviderError


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    name = "fake"

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.raise_error: bool = False
        self.calls: list[dict] = []
        self.settled: dict[str, ChargeResult] = {}

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Card declined",
        raise_error: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.raise_error = raise_error

    @property
    def keys(self) -> list[str]:
        return [call["idempotency_key"] for call in self.calls]

    def charge(
        self,
        amount: float,
        currency: str,
        method: str,
        idempotency_key: str,
    ) -> ChargeResult:
        self.calls.append(
            {
                "amount": amount,
                "currency": currency,
                "payment_method": method,
                "idempotency_key": idempotency_key,
            }
        )

        if idempotency_key in self.settled:
            return self.settled[idempotency_key]
        # An unreachable gateway settles nothing
        if self.raise_error:
            raise ProviderError(f"Gateway unreachable: {self.failure_reason}")

        if self.should_succeed:
            result = ChargeResult(
                success=True,
                transaction_id=f"fake_txn_{uuid4().hex[:12]}",
                status="succeeded",
                response="Charge successful",
            )
        else:
            result = ChargeResult(
                success=False,
                status="failed",
                failure_reason=self.failure_reason,
            )
        self.settled[idempotency_key] = result
        return result
