"""Business-level retry of failed side effects.

Transport retries (redelivering a message) live in ``eventbus``. This
controller retries the side effect itself: it moves a failed aggregate to
``retrying``, consumes one unit of its retry budget, calls the provider
again and records the outcome. The aggregate is persisted whatever
happens, so a crash after the call never loses the result. Two callers
retrying the same aggregate race on its stored version; the loser gets
``ConcurrentModification`` before the provider is called.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from shared.errors import NotFound, NotRetryable
from shared.lifecycle import Lifecycle
from shared.store import EntityStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Outcome:
    """Result of one call to an outbound provider."""

    succeeded: bool
    response: dict[str, Any] | None = None
    error: str | None = None


class RetryController:
    def __init__(
        self,
        store: EntityStore,
        lifecycle: Lifecycle,
        attempt: Callable[[Any], Outcome],
        *,
        on_retrying: Callable[[Any], None] | None = None,
        on_outcome: Callable[[Any], None] | None = None,
    ) -> None:
        self.store = store
        self.lifecycle = lifecycle
        self.attempt = attempt
        self.on_retrying = on_retrying
        self.on_outcome = on_outcome

    def retry(self, entity_id: str):
        entity = self.store.get(entity_id)
        if not self.lifecycle.can_retry(entity):
            raise NotRetryable(str(entity.id), entity.status, entity.retries or 0)

        self.lifecycle.mark_retrying(entity)
        self.lifecycle.increment_retry(entity)
        # A failing hook leaves the stored aggregate failed with its budget intact
        if self.on_retrying is not None:
            self.on_retrying(entity)
        self.store.save(entity)
        attempt_number = entity.retries

        logger.info(
            "retry_started",
            kind=self.store.kind,
            entity_id=str(entity.id),
            attempt=attempt_number,
            max_retries=self.lifecycle.max_retries,
        )

        try:
            outcome = self.attempt(entity)
            if outcome.succeeded:
                self.lifecycle.mark_succeeded(entity, outcome.response)
            else:
                self.lifecycle.mark_failed(
                    entity,
                    f"Retry {attempt_number}/{self.lifecycle.max_retries} failed: {outcome.error or 'unknown error'}",
                )
        except Exception as exc:
            logger.warning(
                "retry_attempt_raised",
                kind=self.store.kind,
                entity_id=str(entity.id),
                attempt=attempt_number,
                error=str(exc),
            )
            self.lifecycle.mark_failed(
                entity, f"Retry {attempt_number}/{self.lifecycle.max_retries} failed: {exc}"
            )
        finally:
            self.store.save(entity)

        logger.info(
            "retry_finished",
            kind=self.store.kind,
            entity_id=str(entity.id),
            attempt=attempt_number,
            status=entity.status,
        )

        if self.on_outcome is not None:
            self.on_outcome(entity)
        return entity

    def retry_eligible(self, limit: int = 10) -> list:
        """Retry up to ``limit`` failed aggregates, oldest first.

        A failure on one aggregate is logged and does not stop the batch.
        Returns the aggregates that were retried.
        """
        candidates = self.store.find_retryable(
            self.lifecycle.failed.value, self.lifecycle.max_retries, limit
        )
        retried = []
        for candidate in candidates:
            try:
                retried.append(self.retry(str(candidate.id)))
            except (NotFound, NotRetryable) as exc:
                logger.info("retry_skipped", kind=self.store.kind, entity_id=str(candidate.id), reason=str(exc))
            except Exception:
                logger.exception("retry_batch_item_failed", kind=self.store.kind, entity_id=str(candidate.id))
        logger.info("retry_batch_finished", kind=self.store.kind, candidates=len(candidates), retried=len(retried))
        return retried
