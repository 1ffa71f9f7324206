"""Charging an order exactly once, however often ``order.created`` arrives."""

import pytest
from eventbus.errors import TransientBrokerError
from payments.payment.payment import Payment, PaymentStatus
from shared.errors import BusinessValidationError
from shared.events.payments import PaymentFailed, PaymentSucceeded
from shared.events.registry import parse_event


class TestInitiatePayment:
    def test_successful_charge(self, service, store, gateway, publisher, order_created):
        payment = service.initiator.initiate(order_created())

        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert payment.provider_ref.startswith("fake-")
        assert len(gateway.calls) == 1
        assert gateway.keys == ["corr-1|order.created|attempt-0"]
        assert store.get(str(payment.id)).status == PaymentStatus.SUCCEEDED.value

        [event] = publisher.of_type(PaymentSucceeded)
        assert event.correlation_id == "corr-1"
        assert event.payload.order_id == "o1"
        assert event.payload.amount == 59.98
        assert event.payload.provider_response["transaction_id"].startswith("fake_txn_")

    def test_declined_charge(self, service, store, gateway, publisher, order_created):
        gateway.configure(should_succeed=False, failure_reason="Insufficient funds")

        payment = service.initiator.initiate(order_created())

        assert payment.status == PaymentStatus.FAILED.value
        assert store.get(str(payment.id)).last_error == "Insufficient funds"
        [event] = publisher.of_type(PaymentFailed)
        assert event.payload.reason == "Insufficient funds"
        assert event.payload.attempt == 0
        assert event.payload.can_retry is True
        assert event.payload.customer_email == "jane@example.com"

    def test_unreachable_gateway_is_recorded_as_failure(self, service, store, gateway, order_created):
        gateway.configure(should_succeed=False, failure_reason="timeout", raise_error=True)

        payment = service.initiator.initiate(order_created())

        stored = store.get(str(payment.id))
        assert stored.status == PaymentStatus.FAILED.value
        assert stored.last_error.startswith("Gateway error:")

    def test_invalid_order_is_rejected_before_charging(self, service, store, gateway, order_created):
        with pytest.raises(BusinessValidationError):
            service.initiator.initiate(order_created(total_amount=0))
        assert gateway.calls == []
        assert store.find_by() == []


class TestAmountDue:
    def test_currency_defaults_to_usd(self, service, gateway):
        event = parse_event(
            b'{"eventType":"order.created","correlationId":"corr-1",'
            b'"payload":{"orderId":"o1","userId":"u1","totalAmount":42.5}}'
        )

        payment = service.initiator.initiate(event)

        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert (payment.amount, payment.currency) == (42.5, "USD")
        assert [(call["amount"], call["currency"]) for call in gateway.calls] == [(42.5, "USD")]

    def test_item_lines_are_charged_when_no_total_is_announced(self, service, order_created):
        payment = service.initiator.initiate(order_created(total_amount=None))
        assert payment.amount == 59.98

    def test_order_without_any_amount_is_rejected_before_charging(self, service, store, gateway, order_created):
        with pytest.raises(BusinessValidationError):
            service.initiator.initiate(order_created(total_amount=None, items=[]))
        assert gateway.calls == []
        assert store.find_by() == []


class TestRedelivery:
    def test_redelivered_request_is_not_charged_twice(self, service, store, gateway, publisher, order_created):
        event = order_created()
        first = service.initiator.initiate(event)
        second = service.initiator.initiate(event)

        assert second.id == first.id
        assert second.status == PaymentStatus.SUCCEEDED.value
        assert len(gateway.calls) == 1
        assert len(store.find_by(order_id="o1")) == 1

    def test_redelivery_repeats_the_settled_outcome(self, service, gateway, publisher, order_created):
        gateway.configure(should_succeed=False)
        event = order_created()
        service.initiator.initiate(event)
        service.initiator.initiate(event)

        assert len(gateway.calls) == 1
        assert len(publisher.of_type(PaymentFailed)) == 2

    def test_fresh_event_with_same_correlation_id_is_a_duplicate(self, service, gateway, order_created):
        service.initiator.initiate(order_created())
        service.initiator.initiate(order_created())
        assert len(gateway.calls) == 1

    def test_pending_payment_left_by_a_crash_is_resumed(self, service, store, gateway, order_created):
        orphan = store.add(Payment.create(correlation_id="corr-1", order_id="o1", user_id="u1", amount=59.98))

        payment = service.initiator.initiate(order_created())

        assert payment.id == orphan.id
        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert len(gateway.calls) == 1

    def test_outcome_survives_a_broker_outage(self, service, store, gateway, publisher, order_created):
        publisher.fail_with = TransientBrokerError("channel closed")
        event = order_created()

        with pytest.raises(TransientBrokerError):
            service.initiator.initiate(event)
        [stored] = store.find_by(order_id="o1")
        assert stored.status == PaymentStatus.SUCCEEDED.value

        publisher.fail_with = None
        service.initiator.initiate(event)

        assert len(gateway.calls) == 1
        assert len(publisher.of_type(PaymentSucceeded)) == 1
