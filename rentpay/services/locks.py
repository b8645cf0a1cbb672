"""In-process locks serializing lifecycle operations per payment."""

import asyncio
import weakref


class PaymentLocks:
    """Registry of asyncio locks keyed by payment id.

    Locks are held weakly and disappear once no coroutine is using them.
    Only protects callers sharing one process and event loop.
    """

    def __init__(self):
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def for_payment(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


# Shared by every PaymentService in the process unless one is injected
payment_locks = PaymentLocks()

__all__ = ["PaymentLocks", "payment_locks"]
