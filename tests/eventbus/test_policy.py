import pika
import pytest
from eventbus.errors import MalformedMessage, UnhandledEvent
from eventbus.policy import RETRY_HEADER, Decision, RetryPolicy, read_retry_count


def _props(value=None):
    headers = {} if value is None else {RETRY_HEADER: value}
    return pika.BasicProperties(headers=headers)


class TestReadRetryCount:
    @pytest.mark.parametrize(
        "value, expected",
        [(None, 0), (2, 2), ("3", 3), (b"1", 1), ("garbage", 0), (-4, 0)],
    )
    def test_reads_header(self, value, expected):
        assert read_retry_count(_props(value)) == expected

    def test_missing_headers(self):
        assert read_retry_count(pika.BasicProperties()) == 0


class TestRetryPolicy:
    def test_retries_until_budget_is_spent(self):
        policy = RetryPolicy(3, (MalformedMessage,))
        decisions = [policy.decide(RuntimeError("boom"), count) for count in range(5)]
        assert decisions == [Decision.RETRY] * 3 + [Decision.DEAD_LETTER] * 2

    def test_terminal_errors_skip_retries(self):
        policy = RetryPolicy(3, (MalformedMessage,))
        assert policy.decide(MalformedMessage("bad json"), 0) == Decision.DEAD_LETTER
        assert policy.decide(UnhandledEvent("no handler"), 0) == Decision.DEAD_LETTER

    def test_zero_budget_dead_letters_first_failure(self):
        assert RetryPolicy(0, ()).decide(RuntimeError(), 0) == Decision.DEAD_LETTER

    def test_negative_budget_is_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(-1, ())
