"""Unit tests for the polling payment watcher."""

import asyncio

import pytest

from rentpay.models import PaymentStatus
from rentpay.services import PaymentWatcher, snapshot_fingerprint
from rentpay.services.filters import PaymentFilters


@pytest.mark.unit
class TestPaymentWatcher:
    """Tests for PaymentWatcher."""

    @pytest.mark.asyncio
    async def test_first_poll_delivers_current_set(self, payment_store, make_payment):
        await payment_store.insert(make_payment())
        watcher = PaymentWatcher(payment_store)
        received = []
        watcher.subscribe("tenant_1", received.append)

        assert await watcher.poll_once() == 1
        assert len(received) == 1
        assert len(received[0]) == 1

    @pytest.mark.asyncio
    async def test_unchanged_set_not_redelivered(self, payment_store, make_payment):
        await payment_store.insert(make_payment())
        watcher = PaymentWatcher(payment_store)
        received = []
        watcher.subscribe("tenant_1", received.append)

        await watcher.poll_once()
        assert await watcher.poll_once() == 0
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_status_change_redelivered(self, payment_store, make_payment):
        payment = make_payment()
        await payment_store.insert(payment)
        watcher = PaymentWatcher(payment_store)
        received = []
        watcher.subscribe("tenant_1", received.append)
        await watcher.poll_once()

        await payment_store.update(payment.id, {"status": PaymentStatus.PAID})

        assert await watcher.poll_once() == 1
        assert received[-1][0].status == PaymentStatus.PAID

    @pytest.mark.asyncio
    async def test_async_callback_and_filters(self, payment_store, make_payment):
        await payment_store.insert(make_payment(month="2025-01", status=PaymentStatus.PAID))
        await payment_store.insert(make_payment(month="2025-02"))
        watcher = PaymentWatcher(payment_store)
        received = []

        async def callback(payments):
            received.append(payments)

        watcher.subscribe("tenant_1", callback, PaymentFilters.outstanding())
        await watcher.poll_once()

        assert [p.month for p in received[0]] == ["2025-02"]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, payment_store):
        watcher = PaymentWatcher(payment_store)
        unsubscribe = watcher.subscribe("tenant_1", lambda payments: None)
        assert watcher.subscription_count == 1

        unsubscribe()
        unsubscribe()

        assert watcher.subscription_count == 0
        assert await watcher.poll_once() == 0

    @pytest.mark.asyncio
    async def test_run_until_stopped(self, payment_store, make_payment):
        await payment_store.insert(make_payment())
        watcher = PaymentWatcher(payment_store, interval=0.01)
        delivered = asyncio.Event()
        watcher.subscribe("tenant_1", lambda payments: delivered.set())

        task = asyncio.create_task(watcher.run())
        await asyncio.wait_for(delivered.wait(), timeout=1)
        watcher.stop()
        await asyncio.wait_for(task, timeout=1)

        assert task.done()

    def test_fingerprint_ignores_order(self, make_payment):
        first = make_payment(month="2025-01")
        second = make_payment(month="2025-02")

        assert snapshot_fingerprint([first, second]) == snapshot_fingerprint([second, first])
