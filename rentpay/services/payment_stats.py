"""Payment statistics over an in-memory set of payments."""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Iterable

from rentpay.models import Payment, PaymentStatus

SECONDS_PER_DAY = 86400


@dataclass
class PaymentStats:
    """Aggregate over a tenant's or a property's payments."""

    total_payments: int = 0
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    pending_amount: Decimal = Decimal("0")
    overdue_amount: Decimal = Decimal("0")
    average_payment_delay: float = 0.0
    """Mean days between due date and payment over paid records."""

    total_late_payments: int = 0
    total_late_fees: Decimal = Decimal("0")

    def to_dict(self) -> dict:
        return asdict(self)


def payment_delay_days(payment: Payment) -> int:
    """Whole days a payment was settled after its due date (never negative)."""
    if payment.paid_at is None or payment.due_date is None:
        return 0
    elapsed = (payment.paid_at - payment.due_date).total_seconds()
    return max(0, int(elapsed // SECONDS_PER_DAY))


def compute_stats(payments: Iterable[Payment]) -> PaymentStats:
    """Compute payment statistics.

    Failed payments count toward the total but toward none of the
    paid/pending/overdue buckets.

    Args:
        payments: Payments to aggregate (may be empty)

    Returns:
        PaymentStats; all zero for an empty input
    """
    stats = PaymentStats()
    total_delay_days = 0
    paid_count = 0

    for payment in payments:
        amount = Decimal(payment.amount)
        stats.total_payments += 1
        stats.total_amount += amount

        if payment.status == PaymentStatus.PAID:
            stats.paid_amount += amount
            paid_count += 1
            delay = payment_delay_days(payment)
            total_delay_days += delay
            if delay > 0:
                stats.total_late_payments += 1
        elif payment.status == PaymentStatus.PENDING:
            stats.pending_amount += amount
        elif payment.status == PaymentStatus.OVERDUE:
            stats.overdue_amount += amount

        if payment.late_fee:
            stats.total_late_fees += Decimal(payment.late_fee)

    if paid_count:
        stats.average_payment_delay = total_delay_days / paid_count

    return stats


__all__ = ["PaymentStats", "compute_stats", "payment_delay_days"]
