"""Polling watcher delivering payment changes to registered callbacks.

Stands in for push-based snapshot listeners: subscribers register a callback
per tenant, and the watcher re-queries the store on an interval, calling back
only when the tenant's payment set has changed since the last delivery.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Union

from rentpay.models import Payment
from rentpay.services.filters import PaymentFilters
from rentpay.services.record_store import PaymentStore

logger = logging.getLogger(__name__)

PaymentCallback = Callable[[list[Payment]], Union[Awaitable[None], None]]


def snapshot_fingerprint(payments: list[Payment]) -> tuple:
    """Identity of a payment set: changes whenever a record is added or modified."""
    return tuple(
        sorted(
            (
                p.id,
                p.status.value if p.status is not None else "",
                p.updated_at.isoformat() if p.updated_at is not None else "",
                p.transaction_id or "",
            )
            for p in payments
        )
    )


@dataclass
class _Subscription:
    tenant_id: str
    callback: PaymentCallback
    filters: Optional[PaymentFilters] = None
    last_fingerprint: Optional[tuple] = field(default=None)


class PaymentWatcher:
    """Poll a payment store and notify subscribers of changes."""

    def __init__(self, store: PaymentStore, interval: float = 30.0):
        """Initialize watcher.

        Args:
            store: Payment store to poll
            interval: Seconds between polls in run()
        """
        self.store = store
        self.interval = interval
        self._subscriptions: list[_Subscription] = []
        self._stopped = asyncio.Event()

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        tenant_id: str,
        callback: PaymentCallback,
        filters: Optional[PaymentFilters] = None,
    ) -> Callable[[], None]:
        """Register a callback for a tenant's payments.

        The first poll after subscribing always delivers the current set.

        Returns:
            Function removing the subscription
        """
        subscription = _Subscription(tenant_id=tenant_id, callback=callback, filters=filters)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

        return unsubscribe

    async def poll_once(self) -> int:
        """Query every subscription once and deliver changed sets.

        Returns:
            Number of callbacks invoked
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            payments = await self.store.query(
                tenant_id=subscription.tenant_id, filters=subscription.filters
            )
            fingerprint = snapshot_fingerprint(payments)
            if fingerprint == subscription.last_fingerprint:
                continue
            subscription.last_fingerprint = fingerprint
            result = subscription.callback(payments)
            if inspect.isawaitable(result):
                await result
            delivered += 1
        return delivered

    async def run(self, interval: Optional[float] = None) -> None:
        """Poll until stop() is called, every interval seconds (default: self.interval)."""
        interval = self.interval if interval is None else interval
        self._stopped.clear()
        logger.info("Payment watcher started (interval=%ss)", interval)
        while not self._stopped.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Payment watcher poll failed")
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Payment watcher stopped")

    def stop(self) -> None:
        self._stopped.set()


__all__ = ["PaymentCallback", "PaymentWatcher", "snapshot_fingerprint"]
