"""Payment ORM model for tenant rent obligations."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from rentpay.models import Base, BaseModel
from rentpay.models.types import UTCDateTime

# Identifier carried by the not-yet-persisted current month projection
PROJECTED_PAYMENT_ID = "current-month"


class PaymentStatus(str, Enum):
    """Lifecycle status of an obligation.

    PENDING -> OVERDUE -> PAID, with FAILED reachable only from PENDING.
    """

    PENDING = "pending"
    OVERDUE = "overdue"
    PAID = "paid"
    FAILED = "failed"


class PaymentType(str, Enum):
    """Kind of obligation."""

    RENT = "rent"
    DEPOSIT = "deposit"
    UTILITY = "utility"
    LATE_FEE = "late_fee"
    OTHER = "other"


class PaymentMethod(str, Enum):
    """How an obligation was settled."""

    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    UPI = "upi"
    CHEQUE = "cheque"
    ONLINE = "online"


class Payment(Base, BaseModel):
    """Model representing one obligation for one tenant in one billing period.

    The billing period label (month, ``YYYY-MM``) is unique per tenant and
    obligation type, so a tenant can never hold two persisted rent records
    for the same month.
    """

    __tablename__ = "payments"

    # References
    tenant_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    property_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    room_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Obligation
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Obligation amount in major currency units",
    )
    payment_type: Mapped[PaymentType] = mapped_column(
        SQLEnum(PaymentType),
        nullable=False,
        default=PaymentType.RENT,
    )
    status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True,
    )
    month: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
        comment="Billing period label (YYYY-MM)",
    )
    due_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)

    # Settlement
    paid_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    late_fee: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    overdue_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(
        SQLEnum(PaymentMethod), nullable=True
    )
    transaction_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        comment="Gateway order id of the latest order created for this payment",
    )
    gateway_payment_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "payment_type", "month", name="uq_tenant_type_month"),
        CheckConstraint("amount >= 0", name="ck_payment_amount_non_negative"),
        Index("idx_payment_tenant_status", "tenant_id", "status"),
    )

    @property
    def is_projection(self) -> bool:
        return self.id == PROJECTED_PAYMENT_ID

    @property
    def amount_due(self) -> Decimal:
        """Amount to collect, including any accrued late fee."""
        return Decimal(self.amount) + Decimal(self.late_fee or 0)

    def __repr__(self) -> str:
        return (
            f"<Payment(id={self.id}, tenant_id={self.tenant_id}, month={self.month}, "
            f"amount={self.amount}, status={self.status})>"
        )


__all__ = ["Payment", "PaymentMethod", "PaymentStatus", "PaymentType", "PROJECTED_PAYMENT_ID"]
