"""Business retry: bounded, persisted whatever the provider does."""

from datetime import UTC, datetime, timedelta

import pytest
from payments.payment.payment import PAYMENT_LIFECYCLE, Payment, PaymentStatus
from shared.errors import ConcurrentModification, NotFound, NotRetryable, ProviderError
from shared.retry import Outcome, RetryController
from shared.store import MemoryStore


class ScriptedAttempt:
    """Returns the scripted outcomes in order; exceptions are raised."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def __call__(self, entity):
        self.calls.append((str(entity.id), entity.status, entity.retries))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def store():
    return MemoryStore(Payment)


def _failed_payment(store, new_payment, correlation_id="corr-300", age_minutes=0):
    payment = new_payment(correlation_id)
    payment.created_at = datetime(2026, 1, 1, tzinfo=UTC) + timedelta(minutes=age_minutes)
    payment.mark_failed("Card declined")
    store.add(payment)
    return str(payment.id)


class TestRetry:
    def test_successful_retry_marks_succeeded(self, store, new_payment):
        payment_id = _failed_payment(store, new_payment)
        attempt = ScriptedAttempt(Outcome(succeeded=True, response={"transaction_id": "txn-9"}))
        controller = RetryController(store, PAYMENT_LIFECYCLE, attempt)

        payment = controller.retry(payment_id)

        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert payment.retries == 1
        assert attempt.calls == [(payment_id, PaymentStatus.RETRYING.value, 1)]
        assert store.get(payment_id).status == PaymentStatus.SUCCEEDED.value

    def test_provider_exception_is_recorded_as_failure(self, store, new_payment):
        payment_id = _failed_payment(store, new_payment)
        controller = RetryController(store, PAYMENT_LIFECYCLE, ScriptedAttempt(ProviderError("timeout")))

        payment = controller.retry(payment_id)

        stored = store.get(payment_id)
        assert payment.status == stored.status == PaymentStatus.FAILED.value
        assert stored.last_error == "Retry 1/3 failed: timeout"

    def test_unknown_entity_raises_not_found(self, store, payment_ctx):
        controller = RetryController(store, PAYMENT_LIFECYCLE, ScriptedAttempt())
        with pytest.raises(NotFound):
            controller.retry("missing")

    def test_non_failed_entity_is_not_retryable(self, store, new_payment):
        payment = store.add(new_payment("corr-301"))
        attempt = ScriptedAttempt()
        controller = RetryController(store, PAYMENT_LIFECYCLE, attempt)

        with pytest.raises(NotRetryable):
            controller.retry(str(payment.id))
        assert attempt.calls == []

    def test_hooks_see_retrying_then_outcome(self, store, new_payment):
        payment_id = _failed_payment(store, new_payment)
        seen = []
        controller = RetryController(
            store,
            PAYMENT_LIFECYCLE,
            ScriptedAttempt(Outcome(succeeded=False, error="declined again")),
            on_retrying=lambda entity: seen.append(("retrying", entity.status)),
            on_outcome=lambda entity: seen.append(("outcome", entity.status)),
        )

        controller.retry(payment_id)

        assert seen == [("retrying", "retrying"), ("outcome", "failed")]

    def test_failing_retrying_hook_spends_no_budget(self, store, new_payment):
        payment_id = _failed_payment(store, new_payment)
        attempt = ScriptedAttempt(Outcome(succeeded=True))

        def announce(entity):
            raise ConnectionError("broker unreachable")

        controller = RetryController(store, PAYMENT_LIFECYCLE, attempt, on_retrying=announce)

        with pytest.raises(ConnectionError):
            controller.retry(payment_id)

        stored = store.get(payment_id)
        assert stored.status == PaymentStatus.FAILED.value
        assert stored.retries == 0
        assert attempt.calls == []

    def test_concurrent_retry_loses_to_the_first_writer(self, store, new_payment):
        payment_id = _failed_payment(store, new_payment)
        attempt = ScriptedAttempt(Outcome(succeeded=True))

        def rival_retries_first(entity):
            rival = store.get(payment_id)
            rival.mark_retrying()
            rival.increment_retry()
            store.save(rival)

        controller = RetryController(store, PAYMENT_LIFECYCLE, attempt, on_retrying=rival_retries_first)

        with pytest.raises(ConcurrentModification):
            controller.retry(payment_id)
        assert attempt.calls == []
        assert store.get(payment_id).retries == 1


class TestRetryBudget:
    def test_three_failed_retries_exhaust_the_budget(self, store, new_payment):
        payment_id = _failed_payment(store, new_payment)
        attempt = ScriptedAttempt(*(Outcome(succeeded=False, error="declined") for _ in range(3)))
        controller = RetryController(store, PAYMENT_LIFECYCLE, attempt)

        for expected_retries in (1, 2, 3):
            payment = controller.retry(payment_id)
            assert payment.status == PaymentStatus.FAILED.value
            assert payment.retries == expected_retries

        with pytest.raises(NotRetryable):
            controller.retry(payment_id)
        assert len(attempt.calls) == 3
        assert store.get(payment_id).retries == 3


class TestRetryEligible:
    def test_batch_retries_oldest_first_and_survives_item_errors(self, store, new_payment):
        ids = [_failed_payment(store, new_payment, f"corr-31{i}", age_minutes=i) for i in range(3)]
        attempt = ScriptedAttempt(
            Outcome(succeeded=True),
            ProviderError("gateway down"),
            Outcome(succeeded=True),
        )
        controller = RetryController(store, PAYMENT_LIFECYCLE, attempt)

        retried = controller.retry_eligible(limit=10)

        assert [str(p.id) for p in retried] == ids
        assert [p.status for p in retried] == ["succeeded", "failed", "succeeded"]

    def test_batch_respects_limit(self, store, new_payment):
        for i in range(3):
            _failed_payment(store, new_payment, f"corr-32{i}")
        controller = RetryController(
            store, PAYMENT_LIFECYCLE, ScriptedAttempt(*(Outcome(succeeded=True) for _ in range(3)))
        )
        assert len(controller.retry_eligible(limit=2)) == 2
