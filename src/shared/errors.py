"""Error taxonomy shared by the ordering, payments and notifications services.

Entity invariant violations subclass Protean's ``ValidationError`` so that
``exc.messages`` is keyed by the offending field, the same way the aggregates
report field validation failures.
"""

from protean.exceptions import ExpectedVersionError, ValidationError


class BusinessValidationError(ValidationError):
    """Input violates a business rule (missing recipient, non-positive amount)."""


class InvalidTransition(ValidationError):
    """A status change that the lifecycle transition table does not allow."""

    def __init__(self, from_status: str, to_status: str) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__({"status": [f"Cannot transition from {from_status} to {to_status}"]})


class MaxRetriesExceeded(ValidationError):
    def __init__(self, max_retries: int) -> None:
        self.max_retries = max_retries
        super().__init__({"retries": [f"Maximum retry attempts ({max_retries}) exceeded"]})


class NotRetryable(ValidationError):
    """Retry requested for an entity that is not failed or is out of budget."""

    def __init__(self, entity_id: str, status: str, retries: int) -> None:
        self.entity_id = entity_id
        self.status = status
        self.retries = retries
        super().__init__(
            {"status": [f"Entity {entity_id} cannot be retried (status={status}, retries={retries})"]}
        )


class NotFound(LookupError):
    def __init__(self, kind: str, entity_id: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} {entity_id} not found")


class DuplicateEffect(Exception):
    """A second entity was stored under an idempotency key that is already taken."""

    def __init__(self, idempotency_key: str) -> None:
        self.idempotency_key = idempotency_key
        super().__init__(f"An entity with idempotency key {idempotency_key!r} already exists")


class ConcurrentModification(ExpectedVersionError):
    """The aggregate was saved by another writer after it was loaded."""

    def __init__(self, kind: str, entity_id: str, expected: int, stored: int | None) -> None:
        self.kind = kind
        self.entity_id = entity_id
        self.expected = expected
        self.stored = stored
        super().__init__(f"{kind} {entity_id} is at version {stored}, expected {expected}")


class ProviderError(Exception):
    """An outbound provider (payment gateway, notification channel) could not be used."""
