"""One side effect per idempotency key, even under concurrent claims."""

import threading

from payments.payment.payment import Payment
from shared.idempotency import IdempotencyGuard, idempotency_key
from shared.store import MemoryStore


class TestIdempotencyKey:
    def test_key_includes_channel_when_given(self):
        assert idempotency_key("c-1", "order.created") == "c-1|order.created"
        assert idempotency_key("c-1", "order.created", "email") == "c-1|order.created|email"


class TestClaim:
    def test_first_claim_creates(self, new_payment):
        guard = IdempotencyGuard(MemoryStore(Payment))
        payment, created = guard.claim(new_payment("corr-100"))
        assert created
        assert guard.find_existing("corr-100", "order.created").id == payment.id

    def test_second_claim_returns_the_winner(self, new_payment):
        guard = IdempotencyGuard(MemoryStore(Payment))
        first, _ = guard.claim(new_payment("corr-101"))
        second, created = guard.claim(new_payment("corr-101"))
        assert not created
        assert second.id == first.id

    def test_different_correlation_ids_do_not_collide(self, new_payment):
        guard = IdempotencyGuard(MemoryStore(Payment))
        _, first_created = guard.claim(new_payment("corr-102"))
        _, second_created = guard.claim(new_payment("corr-103"))
        assert first_created and second_created

    def test_concurrent_claims_store_exactly_one(self, payments_bed, new_payment):
        store = MemoryStore(Payment)
        guard = IdempotencyGuard(store)
        candidates = [new_payment("corr-race") for _ in range(8)]
        results = []
        barrier = threading.Barrier(len(candidates))

        def claim(candidate):
            barrier.wait()
            with payments_bed.domain_context():
                entity, created = guard.claim(candidate)
                results.append((str(entity.id), created))

        threads = [threading.Thread(target=claim, args=(candidate,)) for candidate in candidates]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(1 for _, created in results if created) == 1
        assert len({entity_id for entity_id, _ in results}) == 1
        assert len(store.find_by()) == 1
