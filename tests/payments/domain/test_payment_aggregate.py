import pytest
from payments.payment.payment import Payment, PaymentStatus
from shared.errors import BusinessValidationError, InvalidTransition, MaxRetriesExceeded


def _payment(**overrides):
    kwargs = {
        "correlation_id": "corr-1",
        "order_id": "o1",
        "user_id": "u1",
        "amount": 59.98,
    }
    kwargs.update(overrides)
    return Payment.create(**kwargs)


class TestPaymentCreation:
    def test_starts_pending(self):
        payment = _payment()
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.retries == 0
        assert payment.currency == "USD"
        assert payment.method == "credit_card"
        assert payment.created_at is not None

    def test_idempotency_key_scoped_to_request_event(self):
        assert _payment().idempotency_key == "corr-1|order.created"

    def test_currency_is_normalized(self):
        assert _payment(currency="eur").currency == "EUR"

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"amount": 0}, "amount"),
            ({"amount": -5}, "amount"),
            ({"order_id": ""}, "order_id"),
            ({"correlation_id": ""}, "correlation_id"),
            ({"currency": "DOLLARS"}, "currency"),
            ({"method": "barter"}, "method"),
        ],
    )
    def test_rejects_invalid_input(self, overrides, field):
        with pytest.raises(BusinessValidationError) as exc:
            _payment(**overrides)
        assert field in exc.value.messages


class TestPaymentTransitions:
    def test_processing_then_succeeded(self):
        payment = _payment()
        payment.mark_processing("fake-123")
        payment.mark_succeeded({"transaction_id": "txn-1"})

        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert payment.provider_ref == "fake-123"
        assert payment.completed_at is not None
        assert payment.is_terminal()

    def test_failed_payment_can_retry(self):
        payment = _payment()
        payment.mark_failed("Card declined")
        assert payment.can_retry()
        assert payment.last_error == "Card declined"

    def test_succeeded_payment_cannot_fail(self):
        payment = _payment()
        payment.mark_succeeded({"transaction_id": "txn-1"})

        with pytest.raises(InvalidTransition):
            payment.mark_failed("x")
        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert payment.last_error is None

    def test_cancelled_payment_is_frozen(self):
        payment = _payment()
        payment.cancel("Order cancelled")

        assert payment.cancellation_reason == "Order cancelled"
        assert not payment.can_be_modified()
        with pytest.raises(InvalidTransition):
            payment.mark_processing("fake-1")

    def test_retrying_past_budget_is_refused(self):
        payment = _payment()
        payment.mark_failed("declined")
        payment.retries = 3

        assert not payment.can_retry()
        with pytest.raises(MaxRetriesExceeded):
            payment.mark_retrying()
        assert payment.status == PaymentStatus.FAILED.value
