"""Record store interfaces and their SQLAlchemy implementations.

The lifecycle manager only talks to these narrow interfaces. Timestamps
leaving the SQL store are already normalized to aware UTC datetimes by the
``UTCDateTime`` column type.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Sequence, Union

from sqlalchemy import select
from sqlalchemy import update as update_stmt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rentpay.models import Payment, PaymentStatus, Tenant
from rentpay.services.errors import DuplicateObligationError, NotFoundError
from rentpay.services.filters import PaymentFilters

logger = logging.getLogger(__name__)

# Fields lifecycle operations are allowed to write after creation
UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "paid_at",
        "late_fee",
        "overdue_days",
        "payment_method",
        "transaction_id",
        "gateway_payment_id",
        "notes",
    }
)

FieldUpdate = tuple[str, dict[str, Any]]
ExpectedStatus = Union[PaymentStatus, Iterable[PaymentStatus], None]


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")


def expected_statuses(expected_status: ExpectedStatus) -> frozenset[PaymentStatus] | None:
    """Normalize an expected status argument to a set, or None for unconditional."""
    if expected_status is None:
        return None
    if isinstance(expected_status, PaymentStatus):
        return frozenset({expected_status})
    return frozenset(expected_status)


class PaymentStore(ABC):
    """Keyed collection of payment records."""

    @abstractmethod
    async def get(self, payment_id: str) -> Payment | None:
        """Fetch a payment by id, or None if it does not exist."""

    @abstractmethod
    async def query(
        self,
        tenant_id: str | None = None,
        filters: PaymentFilters | None = None,
        property_id: str | None = None,
    ) -> list[Payment]:
        """List payments, newest first. A None tenant_id spans all tenants."""

    @abstractmethod
    async def insert(self, payment: Payment) -> str:
        """Persist a new payment and return its generated id.

        Raises:
            DuplicateObligationError: If the tenant already has a record of the
                same type for the same month
        """

    @abstractmethod
    async def update(
        self,
        payment_id: str,
        fields: dict[str, Any],
        expected_status: ExpectedStatus = None,
    ) -> bool:
        """Apply a partial update to one payment.

        With expected_status set, the write only happens while the stored
        status is still one of the expected ones.

        Returns:
            True if the update was written, False if the status had moved on

        Raises:
            NotFoundError: If the payment does not exist
        """

    @abstractmethod
    async def batch_update(
        self, updates: Sequence[FieldUpdate], expected_status: ExpectedStatus = None
    ) -> int:
        """Apply several partial updates as one unit.

        Records whose status no longer matches expected_status are skipped.
        A missing record aborts the whole batch with NotFoundError.

        Returns:
            Number of records written
        """


class TenantStore(ABC):
    """Read access to tenancy records."""

    @abstractmethod
    async def get(self, tenant_id: str) -> Tenant | None:
        """Fetch a tenant by id, or None if it does not exist."""


class SqlPaymentStore(PaymentStore):
    """Payment store backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, payment_id: str) -> Payment | None:
        # populate_existing: always re-read, never trust identity-map state
        return await self.session.get(Payment, payment_id, populate_existing=True)

    async def query(
        self,
        tenant_id: str | None = None,
        filters: PaymentFilters | None = None,
        property_id: str | None = None,
    ) -> list[Payment]:
        stmt = select(Payment).execution_options(populate_existing=True)
        if tenant_id is not None:
            stmt = stmt.where(Payment.tenant_id == tenant_id)
        if property_id is not None:
            stmt = stmt.where(Payment.property_id == property_id)
        if filters is not None:
            if filters.statuses:
                stmt = stmt.where(Payment.status.in_(list(filters.statuses)))
            if filters.types:
                stmt = stmt.where(Payment.payment_type.in_(list(filters.types)))
            if filters.month is not None:
                stmt = stmt.where(Payment.month == filters.month)
        stmt = stmt.order_by(Payment.created_at.desc(), Payment.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def insert(self, payment: Payment) -> str:
        self.session.add(payment)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            message = str(e.orig).lower()
            if "unique" in message or "uq_tenant_type_month" in message:
                raise DuplicateObligationError(
                    f"Tenant {payment.tenant_id} already has a {payment.payment_type.value} "
                    f"record for {payment.month}"
                ) from e
            raise
        logger.debug("Inserted payment %s for tenant %s", payment.id, payment.tenant_id)
        return payment.id

    async def update(
        self,
        payment_id: str,
        fields: dict[str, Any],
        expected_status: ExpectedStatus = None,
    ) -> bool:
        return await self.batch_update([(payment_id, fields)], expected_status) == 1

    async def batch_update(
        self, updates: Sequence[FieldUpdate], expected_status: ExpectedStatus = None
    ) -> int:
        if not updates:
            return 0
        for _, fields in updates:
            _check_fields(fields)
        expected = expected_statuses(expected_status)

        written = 0
        try:
            for payment_id, fields in updates:
                # UPDATE ... WHERE id = :id AND status IN (:expected)
                stmt = update_stmt(Payment).where(Payment.id == payment_id)
                if expected is not None:
                    stmt = stmt.where(Payment.status.in_(list(expected)))
                stmt = stmt.values(**fields).execution_options(synchronize_session=False)
                result = await self.session.execute(stmt)
                if result.rowcount:
                    written += 1
                    continue

                exists = await self.session.scalar(
                    select(Payment.id).where(Payment.id == payment_id)
                )
                if exists is None:
                    raise NotFoundError(f"Payment {payment_id} not found")
                logger.warning("Skipped update of payment %s: status changed", payment_id)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return written


class SqlTenantStore(TenantStore):
    """Tenant store backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, tenant_id: str) -> Tenant | None:
        return await self.session.get(Tenant, tenant_id)


__all__ = [
    "ExpectedStatus",
    "FieldUpdate",
    "PaymentStore",
    "SqlPaymentStore",
    "SqlTenantStore",
    "TenantStore",
    "UPDATABLE_FIELDS",
]
