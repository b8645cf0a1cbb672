"""Payment status transitions and late fee calculation."""

from datetime import datetime
from decimal import Decimal

from rentpay.models import PaymentStatus
from rentpay.services.errors import InvalidStateError

# PAID is terminal; FAILED only reopens through a new gateway order
ALLOWED_TRANSITIONS: dict[PaymentStatus, frozenset] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.OVERDUE, PaymentStatus.PAID, PaymentStatus.FAILED}
    ),
    PaymentStatus.OVERDUE: frozenset({PaymentStatus.PAID}),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING}),
    PaymentStatus.PAID: frozenset(),
}

# Statuses an online payment can be started from
PAYABLE_STATUSES = frozenset({PaymentStatus.PENDING, PaymentStatus.OVERDUE, PaymentStatus.FAILED})


def can_transition(current: PaymentStatus, target: PaymentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def sources_of(target: PaymentStatus) -> frozenset:
    """Statuses a payment may be in right before moving to target."""
    return frozenset(s for s, targets in ALLOWED_TRANSITIONS.items() if target in targets)


def ensure_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    """Raise InvalidStateError unless current -> target is allowed."""
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Cannot move payment from {current.value} to {target.value}"
        )


def days_overdue(due_date: datetime, now: datetime) -> int:
    """Whole days elapsed since the due date (negative before it)."""
    return (now - due_date).days


def calculate_late_fee(overdue_days: int, daily_rate: Decimal) -> Decimal:
    """Late fee: max(0, overdue_days * daily_rate)."""
    return max(Decimal("0"), Decimal(overdue_days) * Decimal(daily_rate))


__all__ = [
    "ALLOWED_TRANSITIONS",
    "PAYABLE_STATUSES",
    "calculate_late_fee",
    "can_transition",
    "days_overdue",
    "ensure_transition",
    "sources_of",
]
