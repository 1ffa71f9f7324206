"""Canonical state machine shared by every stateful aggregate.

Orders, payments and notifications all move through the same six roles.
Each aggregate keeps its own status names and maps them onto the roles:

    role         order              payment      notification
    ----------   ----------------   ----------   ------------
    pending      pending            pending      pending
    processing   awaiting_payment   processing   sending
    succeeded    paid               succeeded    sent
    failed       payment_failed     failed       failed
    retrying     retrying           retrying     retrying
    cancelled    cancelled          cancelled    cancelled

Transitions (cancellation is allowed from every non-terminal status):

    pending    -> processing | succeeded | failed | retrying
    processing -> succeeded | failed
    failed     -> retrying (only while retries < max_retries)
    retrying   -> succeeded | failed
    succeeded, cancelled: terminal

Every status change appends an entry to the aggregate's ``status_history``
(a JSON list), recording the old and new status, when it happened, who made
it and why. The trail is stored with the aggregate, so it commits or rolls
back together with the status it describes.

Protean rebuilds aggregate classes from their class dict, so the machine is
kept as a standalone object and each aggregate delegates to it from thin
wrapper methods instead of inheriting it.
"""

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from shared.errors import InvalidTransition, MaxRetriesExceeded

MAX_RETRIES = 3
SYSTEM_ACTOR = "system"


def _now() -> datetime:
    return datetime.now(UTC)


class Lifecycle:
    """Transition table plus the mutators that enforce it on an aggregate."""

    def __init__(
        self,
        statuses: type[Enum],
        *,
        pending: Enum,
        processing: Enum,
        succeeded: Enum,
        failed: Enum,
        retrying: Enum,
        cancelled: Enum,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        self.statuses = statuses
        self.pending = pending
        self.processing = processing
        self.succeeded = succeeded
        self.failed = failed
        self.retrying = retrying
        self.cancelled = cancelled
        self.max_retries = max_retries

        self.transitions: dict[Enum, frozenset[Enum]] = {
            pending: frozenset({processing, succeeded, failed, retrying, cancelled}),
            processing: frozenset({succeeded, failed, cancelled}),
            failed: frozenset({retrying, cancelled}),
            retrying: frozenset({succeeded, failed, cancelled}),
            succeeded: frozenset(),
            cancelled: frozenset(),
        }
        missing = set(statuses) - set(self.transitions)
        if missing:
            raise ValueError(f"Statuses without a lifecycle role: {sorted(s.value for s in missing)}")

        self.terminal = frozenset(status for status, targets in self.transitions.items() if not targets)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def status_of(self, entity) -> Enum:
        return self.statuses(entity.status)

    def allowed_targets(self, status: Enum) -> frozenset[Enum]:
        return self.transitions[status]

    def can_transition(self, entity, target: Enum) -> bool:
        current = self.status_of(entity)
        if target not in self.transitions[current]:
            return False
        if current == self.failed and target == self.retrying:
            return (entity.retries or 0) < self.max_retries
        return True

    def is_terminal(self, entity) -> bool:
        return self.status_of(entity) in self.terminal

    def can_be_modified(self, entity) -> bool:
        return not self.is_terminal(entity)

    def can_retry(self, entity) -> bool:
        return self.status_of(entity) == self.failed and (entity.retries or 0) < self.max_retries

    def history(self, entity) -> list[dict[str, Any]]:
        return json.loads(entity.status_history) if entity.status_history else []

    # -------------------------------------------------------------------
    # Mutators
    # -------------------------------------------------------------------
    def _assert_can_transition(self, entity, target: Enum) -> None:
        current = self.status_of(entity)
        if target not in self.transitions[current]:
            raise InvalidTransition(current.value, target.value)
        if current == self.failed and target == self.retrying and (entity.retries or 0) >= self.max_retries:
            raise MaxRetriesExceeded(self.max_retries)

    def change_status(
        self,
        entity,
        target: Enum,
        *,
        changed_by: str = SYSTEM_ACTOR,
        reason: str | None = None,
    ) -> None:
        """Move the entity to ``target``; raises without touching it if the edge is illegal."""
        self._assert_can_transition(entity, target)
        previous = entity.status
        entity.status = target.value
        entity.updated_at = _now()
        entity.status_history = json.dumps(
            self.history(entity)
            + [
                {
                    "from_status": previous,
                    "to_status": target.value,
                    "changed_at": entity.updated_at.isoformat(),
                    "changed_by": changed_by,
                    "reason": reason,
                }
            ]
        )

    def mark_processing(self, entity, provider_ref: str | None) -> None:
        self.change_status(entity, self.processing)
        entity.provider_ref = provider_ref

    def mark_succeeded(self, entity, provider_response: dict[str, Any] | None = None) -> None:
        self.change_status(entity, self.succeeded)
        if provider_response is not None:
            entity.provider_response = json.dumps(provider_response, default=str)
        entity.last_error = None
        entity.completed_at = entity.updated_at

    def mark_failed(self, entity, reason: str) -> None:
        self.change_status(entity, self.failed, reason=reason)
        entity.last_error = reason

    def mark_retrying(self, entity) -> None:
        self.change_status(entity, self.retrying)

    def cancel(self, entity, reason: str, changed_by: str = SYSTEM_ACTOR) -> None:
        self.change_status(entity, self.cancelled, changed_by=changed_by, reason=reason)
        entity.cancellation_reason = reason
        entity.completed_at = entity.updated_at

    def increment_retry(self, entity) -> None:
        retries = entity.retries or 0
        if retries >= self.max_retries:
            raise MaxRetriesExceeded(self.max_retries)
        entity.retries = retries + 1
        entity.updated_at = _now()
