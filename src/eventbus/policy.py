"""Transport-level retry and dead-letter policy.

A failed delivery is either retried by republishing it to the tail of its
own queue with an incremented ``x-retry-count`` header, or rejected without
requeue so the broker dead-letters it. Requeueing a nack is never used to
retry.
"""

from enum import Enum

RETRY_HEADER = "x-retry-count"


class Decision(Enum):
    RETRY = "retry"
    DEAD_LETTER = "dead_letter"


def read_retry_count(properties) -> int:
    """Return the retry counter of a delivery; missing or garbage counts as 0."""
    headers = getattr(properties, "headers", None) or {}
    value = headers.get(RETRY_HEADER)
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 0
    return max(count, 0)


class RetryPolicy:
    def __init__(self, max_retries: int, terminal_errors: tuple[type[BaseException], ...]) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.terminal_errors = terminal_errors

    def is_terminal(self, error: BaseException) -> bool:
        return isinstance(error, self.terminal_errors)

    def decide(self, error: BaseException, retry_count: int) -> Decision:
        if self.is_terminal(error):
            return Decision.DEAD_LETTER
        if retry_count < self.max_retries:
            return Decision.RETRY
        return Decision.DEAD_LETTER
