"""Payment lifecycle service.

Provides methods for:
- Projecting a tenant's current month rent obligation without persisting it
- Creating obligations explicitly
- Starting online payments through the gateway and verifying their outcome
- Sweeping past-due obligations into OVERDUE with a late fee
- Listing payments and computing payment statistics
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from rentpay.models import (
    PROJECTED_PAYMENT_ID,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    Tenant,
    generate_id,
)
from rentpay.models.types import normalize_timestamp
from rentpay.services.config import Settings
from rentpay.services.errors import (
    DuplicateObligationError,
    InvalidStateError,
    MismatchError,
    NotFoundError,
)
from rentpay.services.filters import PaymentFilters
from rentpay.services.gateway import GatewayClient
from rentpay.services.locks import PaymentLocks, payment_locks
from rentpay.services.payment_stats import PaymentStats, compute_stats
from rentpay.services.payment_transitions import (
    PAYABLE_STATUSES,
    calculate_late_fee,
    days_overdue,
    ensure_transition,
    sources_of,
)
from rentpay.services.record_store import (
    PaymentStore,
    SqlPaymentStore,
    SqlTenantStore,
    TenantStore,
)

logger = logging.getLogger(__name__)


@dataclass
class OrderReceipt:
    """What the caller needs to open the hosted checkout."""

    payment_id: str
    order_id: str
    amount: Decimal
    currency: str
    signing_key_id: str


def billing_month(moment: datetime | date) -> str:
    """Billing period label (YYYY-MM) for a point in time."""
    return f"{moment.year:04d}-{moment.month:02d}"


def next_month_start(moment: datetime | date) -> datetime:
    """Midnight UTC on the first day of the following month."""
    if moment.month == 12:
        return datetime(moment.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(moment.year, moment.month + 1, 1, tzinfo=timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentService:
    """Payment lifecycle manager.

    Every operation takes the tenant explicitly and re-reads the payment
    before changing it; nothing is cached between calls.
    """

    def __init__(
        self,
        payments: PaymentStore,
        tenants: TenantStore,
        gateway: GatewayClient,
        daily_late_fee_rate: Decimal = Decimal("50"),
        currency: str = "INR",
        clock: Optional[Callable[[], datetime]] = None,
        locks: Optional[PaymentLocks] = None,
    ):
        """Initialize payment service.

        Args:
            payments: Payment record store
            tenants: Tenant record store
            gateway: Payment gateway client
            daily_late_fee_rate: Late fee charged per day overdue
            currency: Currency orders are created in
            clock: Returns the current time (defaults to UTC now)
            locks: Per-payment lock registry (defaults to the process-wide one)
        """
        self.payments = payments
        self.tenants = tenants
        self.gateway = gateway
        self.daily_late_fee_rate = Decimal(daily_late_fee_rate)
        self.currency = currency
        self.clock = clock or _utcnow
        self.locks = locks or payment_locks

    @classmethod
    def for_session(
        cls, session: AsyncSession, gateway: GatewayClient, settings: Settings
    ) -> "PaymentService":
        """Build a service over SQL stores sharing one session."""
        return cls(
            payments=SqlPaymentStore(session),
            tenants=SqlTenantStore(session),
            gateway=gateway,
            daily_late_fee_rate=settings.daily_late_fee_rate,
            currency=settings.currency,
        )

    # Pure aggregation, exposed for callers holding already-fetched payments
    compute_stats = staticmethod(compute_stats)

    def now(self) -> datetime:
        return normalize_timestamp(self.clock())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_payment(self, payment_id: str) -> Payment:
        """Get payment by ID.

        Raises:
            NotFoundError: If no persisted payment has this id
        """
        payment = await self.payments.get(payment_id)
        if payment is None:
            raise NotFoundError(f"Payment {payment_id} not found")
        return payment

    async def list_payments(
        self, tenant_id: str, filters: Optional[PaymentFilters] = None
    ) -> list[Payment]:
        """List a tenant's payments, newest first."""
        return await self.payments.query(tenant_id=tenant_id, filters=filters)

    async def list_pending(self, tenant_id: str) -> list[Payment]:
        """List a tenant's outstanding (pending or overdue) payments, earliest due first."""
        outstanding = await self.payments.query(
            tenant_id=tenant_id, filters=PaymentFilters.outstanding()
        )
        return sorted(outstanding, key=lambda p: p.due_date)

    async def get_current_obligation(self, tenant_id: str) -> Payment | None:
        """Get the tenant's rent obligation for the current month.

        Returns the persisted record when one exists, otherwise a transient
        PENDING projection due on the first day of next month. Never writes.

        Returns:
            Payment, or None when the tenant is unknown, inactive or has no rent
        """
        tenant = await self.tenants.get(tenant_id)
        if not self._has_rent(tenant):
            return None

        now = self.now()
        existing = await self._find_rent_record(tenant_id, billing_month(now))
        if existing is not None:
            return existing
        return self._build_rent_payment(tenant, now, PROJECTED_PAYMENT_ID)

    async def get_tenant_payment_stats(self, tenant_id: str) -> PaymentStats:
        """Statistics over a tenant's payments, counting an unpersisted current month."""
        payments = await self.list_payments(tenant_id)
        current = await self.get_current_obligation(tenant_id)
        if current is not None and current.is_projection:
            payments.append(current)
        return compute_stats(payments)

    async def get_property_payment_stats(self, property_id: str) -> PaymentStats:
        """Statistics over every persisted payment of a property."""
        return compute_stats(await self.payments.query(property_id=property_id))

    async def fetch_order_status(self, order_id: str) -> dict:
        """Gateway's view of an order (status, amount, attempts)."""
        return await self.gateway.fetch_order(order_id)

    # ------------------------------------------------------------------
    # Obligation generation
    # ------------------------------------------------------------------

    async def create_obligation(
        self,
        tenant_id: str,
        amount: Decimal,
        month: str,
        due_date: datetime | date,
        payment_type: PaymentType = PaymentType.RENT,
        description: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Payment:
        """Persist a new obligation for a tenant.

        Raises:
            ValueError: If amount is negative
            NotFoundError: If the tenant does not exist
            DuplicateObligationError: If the tenant already has this type for the month
        """
        amount = Decimal(amount)
        if amount < 0:
            raise ValueError("amount must not be negative")
        # Validates the label format
        filters = PaymentFilters(types={payment_type}, month=month)

        tenant = await self.tenants.get(tenant_id)
        if tenant is None:
            raise NotFoundError(f"Tenant {tenant_id} not found")

        if await self.payments.query(tenant_id=tenant_id, filters=filters):
            raise DuplicateObligationError(
                f"Tenant {tenant_id} already has a {payment_type.value} record for {month}"
            )

        now = self.now()
        payment = Payment(
            id=generate_id(),
            tenant_id=tenant_id,
            property_id=tenant.property_id,
            room_id=tenant.room_id,
            amount=amount,
            payment_type=payment_type,
            status=PaymentStatus.PENDING,
            month=month,
            due_date=normalize_timestamp(due_date),
            description=description,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        await self.payments.insert(payment)
        logger.info(
            "Created %s obligation %s for tenant %s (%s, amount=%s)",
            payment_type.value,
            payment.id,
            tenant_id,
            month,
            amount,
        )
        return payment

    # ------------------------------------------------------------------
    # Gateway order flow
    # ------------------------------------------------------------------

    async def process_online_payment(
        self, payment_id: str, tenant_id: str, property_id: str
    ) -> OrderReceipt:
        """Create a gateway order for a payment.

        The projected current-month obligation is persisted here, in a single
        insert after the order exists. A FAILED payment goes back to PENDING.
        Otherwise the status is left alone.

        Raises:
            NotFoundError: If the payment (or a current obligation) does not exist
            MismatchError: If the payment belongs to another tenant or property
            InvalidStateError: If the payment is already paid, or its status changed
                while the order was being created
            GatewayUnavailableError: If the order cannot be created; nothing is written
        """
        if payment_id == PROJECTED_PAYMENT_ID:
            return await self._pay_current_obligation(tenant_id, property_id)

        async with self.locks.for_payment(payment_id):
            payment = await self.get_payment(payment_id)
            self._check_owner(payment, tenant_id, property_id)
            if payment.status not in PAYABLE_STATUSES:
                logger.warning(
                    "Refusing order for payment %s in status %s", payment_id, payment.status.value
                )
                raise InvalidStateError(f"Payment {payment_id} is already {payment.status.value}")

            # The order amount is computed from this status
            status = payment.status
            order = await self.gateway.create_order(
                payment.amount_due, self.currency, self._order_metadata(payment)
            )

            fields = {"transaction_id": order.order_id, "payment_method": PaymentMethod.ONLINE}
            if status == PaymentStatus.FAILED:
                ensure_transition(status, PaymentStatus.PENDING)
                fields["status"] = PaymentStatus.PENDING
            if not await self.payments.update(payment_id, fields, expected_status=status):
                logger.warning(
                    "Payment %s changed while order %s was created", payment_id, order.order_id
                )
                raise InvalidStateError(
                    f"Payment {payment_id} changed while the order was created; retry"
                )

        logger.info("Order %s created for payment %s", order.order_id, payment_id)
        return OrderReceipt(
            payment_id=payment_id,
            order_id=order.order_id,
            amount=order.amount,
            currency=order.currency,
            signing_key_id=order.signing_key_id,
        )

    async def _pay_current_obligation(self, tenant_id: str, property_id: str) -> OrderReceipt:
        async with self.locks.for_payment(f"{tenant_id}:{PROJECTED_PAYMENT_ID}"):
            current = await self.get_current_obligation(tenant_id)
            if current is None:
                raise NotFoundError(f"No current obligation for tenant {tenant_id}")
            if not current.is_projection:
                persisted_id = current.id
            else:
                tenant = await self.tenants.get(tenant_id)
                payment = self._build_rent_payment(tenant, self.now(), generate_id())
                self._check_owner(payment, tenant_id, property_id)

                order = await self.gateway.create_order(
                    payment.amount_due, self.currency, self._order_metadata(payment)
                )
                payment.transaction_id = order.order_id
                payment.payment_method = PaymentMethod.ONLINE
                await self.payments.insert(payment)
                logger.info(
                    "Persisted current obligation %s for tenant %s with order %s",
                    payment.id,
                    tenant_id,
                    order.order_id,
                )
                return OrderReceipt(
                    payment_id=payment.id,
                    order_id=order.order_id,
                    amount=order.amount,
                    currency=order.currency,
                    signing_key_id=order.signing_key_id,
                )

        return await self.process_online_payment(persisted_id, tenant_id, property_id)

    async def verify_payment(
        self, payment_id: str, order_id: str, gateway_payment_id: str, signature: str
    ) -> bool:
        """Apply a checkout callback to a payment.

        Returns:
            True when the payment is (or already was) PAID, False when the
            gateway rejected the signature

        Raises:
            NotFoundError: If the payment does not exist
            MismatchError: If order_id is not the payment's current order
            InvalidStateError: If verification already failed for this order, or the
                payment left PENDING/OVERDUE for something other than PAID meanwhile
            GatewayUnavailableError: If the gateway cannot be reached; nothing is written
        """
        async with self.locks.for_payment(payment_id):
            payment = await self.get_payment(payment_id)

            if payment.transaction_id != order_id:
                logger.warning(
                    "Order mismatch for payment %s: got %s, stored %s",
                    payment_id,
                    order_id,
                    payment.transaction_id,
                )
                raise MismatchError(f"Order {order_id} does not belong to payment {payment_id}")

            if payment.status == PaymentStatus.PAID:
                logger.info("Payment %s already paid; verification ignored", payment_id)
                return True
            if payment.status == PaymentStatus.FAILED:
                raise InvalidStateError(
                    f"Verification already failed for order {order_id}; create a new order"
                )

            status = payment.status
            verified = await self.gateway.verify_signature(order_id, gateway_payment_id, signature)

            if verified:
                ensure_transition(status, PaymentStatus.PAID)
                # A sweep may have moved PENDING to OVERDUE meanwhile; both can be paid
                paid = await self.payments.update(
                    payment_id,
                    {
                        "status": PaymentStatus.PAID,
                        "paid_at": self.now(),
                        "gateway_payment_id": gateway_payment_id,
                        "payment_method": PaymentMethod.ONLINE,
                    },
                    expected_status=sources_of(PaymentStatus.PAID),
                )
                if not paid:
                    current = await self.get_payment(payment_id)
                    if current.status != PaymentStatus.PAID:
                        raise InvalidStateError(
                            f"Payment {payment_id} is {current.status.value}; cannot mark paid"
                        )
                    logger.info("Payment %s was paid concurrently", payment_id)
                    return True
                logger.info("Payment %s paid via order %s", payment_id, order_id)
                return True

            failed = status == PaymentStatus.PENDING and await self.payments.update(
                payment_id, {"status": PaymentStatus.FAILED}, expected_status=PaymentStatus.PENDING
            )
            if failed:
                logger.warning("Payment %s failed verification for order %s", payment_id, order_id)
            else:
                # Still owed; an overdue payment stays overdue
                logger.warning(
                    "Payment %s failed verification for order %s; status unchanged",
                    payment_id,
                    order_id,
                )
            return False

    # ------------------------------------------------------------------
    # Overdue sweep
    # ------------------------------------------------------------------

    async def mark_overdue_payments(self, now: Optional[datetime] = None) -> int:
        """Move every past-due PENDING payment to OVERDUE with its late fee.

        Only PENDING records are considered, so running the sweep again never
        recomputes a fee. All transitions are written as one batch, each one
        conditional on the record still being PENDING: a payment verified or
        failed after the query is left as it is.

        Returns:
            Number of payments marked overdue
        """
        now = normalize_timestamp(now) if now is not None else self.now()
        pending = await self.payments.query(
            filters=PaymentFilters(statuses={PaymentStatus.PENDING})
        )

        updates = []
        for payment in pending:
            if payment.due_date >= now:
                continue
            overdue_days = days_overdue(payment.due_date, now)
            updates.append(
                (
                    payment.id,
                    {
                        "status": PaymentStatus.OVERDUE,
                        "late_fee": calculate_late_fee(overdue_days, self.daily_late_fee_rate),
                        "overdue_days": overdue_days,
                    },
                )
            )

        marked = 0
        if updates:
            marked = await self.payments.batch_update(
                updates, expected_status=PaymentStatus.PENDING
            )
        logger.info("Overdue sweep marked %d of %d pending payments", marked, len(pending))
        if marked < len(updates):
            logger.info("Overdue sweep skipped %d payments that changed", len(updates) - marked)
        return marked

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _has_rent(tenant: Tenant | None) -> bool:
        return tenant is not None and tenant.is_active and bool(tenant.rent) and tenant.rent > 0

    async def _find_rent_record(self, tenant_id: str, month: str) -> Payment | None:
        records = await self.payments.query(
            tenant_id=tenant_id,
            filters=PaymentFilters(types={PaymentType.RENT}, month=month),
        )
        return records[0] if records else None

    @staticmethod
    def _build_rent_payment(tenant: Tenant, now: datetime, payment_id: str) -> Payment:
        month = billing_month(now)
        return Payment(
            id=payment_id,
            tenant_id=tenant.id,
            property_id=tenant.property_id,
            room_id=tenant.room_id,
            amount=Decimal(tenant.rent),
            payment_type=PaymentType.RENT,
            status=PaymentStatus.PENDING,
            month=month,
            due_date=next_month_start(now),
            description=f"Monthly rent for {month}",
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def _check_owner(payment: Payment, tenant_id: str, property_id: str) -> None:
        if payment.tenant_id != tenant_id:
            raise MismatchError(f"Payment {payment.id} does not belong to tenant {tenant_id}")
        if payment.property_id != property_id:
            raise MismatchError(f"Payment {payment.id} is not for property {property_id}")

    @staticmethod
    def _order_metadata(payment: Payment) -> dict[str, str]:
        return {
            "tenantId": payment.tenant_id,
            "propertyId": payment.property_id,
            "paymentId": payment.id,
        }


__all__ = ["OrderReceipt", "PaymentService", "billing_month", "next_month_start"]
