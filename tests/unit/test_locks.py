"""Unit tests for per-payment locks."""

import asyncio
import gc

import pytest

from rentpay.services.locks import PaymentLocks


@pytest.mark.unit
class TestPaymentLocks:
    def test_same_key_same_lock(self):
        locks = PaymentLocks()
        first = locks.for_payment("pay_1")

        assert locks.for_payment("pay_1") is first
        assert locks.for_payment("pay_2") is not first

    def test_unused_locks_released(self):
        locks = PaymentLocks()
        locks.for_payment("pay_1")
        gc.collect()

        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_serializes_holders(self):
        locks = PaymentLocks()
        order = []

        async def worker(name):
            async with locks.for_payment("pay_1"):
                order.append(f"{name}-start")
                await asyncio.sleep(0.01)
                order.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a-start", "a-end", "b-start", "b-end"]
