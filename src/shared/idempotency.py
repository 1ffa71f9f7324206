"""Guard that turns redelivered or concurrent requests into one side effect.

A side effect (a charge, a notification) is identified by the correlation id
of the request that caused it, the event type, and for notifications the
channel. The key is stored on the aggregate and the store keeps it unique.
"""

import structlog

from shared.errors import DuplicateEffect
from shared.store import EntityStore

logger = structlog.get_logger(__name__)


def idempotency_key(correlation_id: str, event_type: str, channel: str | None = None) -> str:
    parts = [correlation_id, event_type]
    if channel:
        parts.append(channel)
    return "|".join(parts)


class IdempotencyGuard:
    def __init__(self, store: EntityStore) -> None:
        self.store = store

    def find_existing(self, correlation_id: str, event_type: str, channel: str | None = None):
        return self.store.find_by_idempotency_key(idempotency_key(correlation_id, event_type, channel))

    def claim(self, entity):
        """Insert ``entity`` unless another writer already holds its key.

        Returns ``(entity, True)`` when this call created it, or
        ``(winner, False)`` with the stored entity when it lost the race.
        """
        try:
            self.store.add(entity)
        except DuplicateEffect:
            winner = self.store.find_by_idempotency_key(entity.idempotency_key)
            if winner is None:
                raise
            logger.info(
                "duplicate_effect_resolved",
                kind=self.store.kind,
                idempotency_key=entity.idempotency_key,
                winner_id=str(winner.id),
                winner_status=winner.status,
            )
            return winner, False
        return entity, True
