"""Closed filter configuration for payment queries."""

import re
from dataclasses import dataclass, field
from typing import Iterable

from rentpay.models import Payment, PaymentStatus, PaymentType
from rentpay.services.errors import InvalidFilterError

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def _coerce(values: Iterable, enum_cls, label: str) -> frozenset:
    if isinstance(values, (str, enum_cls)):
        values = [values]
    coerced = set()
    for value in values:
        try:
            coerced.add(enum_cls(value))
        except ValueError:
            raise InvalidFilterError(f"Unknown payment {label}: {value!r}") from None
    return frozenset(coerced)


@dataclass(frozen=True)
class PaymentFilters:
    """Filter set for payment listings.

    Attributes:
        statuses: Statuses to keep (empty keeps all)
        types: Obligation types to keep (empty keeps all)
        month: Billing period label (YYYY-MM) or None for all periods

    Unknown statuses, types or malformed month labels raise InvalidFilterError
    at construction.
    """

    statuses: frozenset = field(default_factory=frozenset)
    types: frozenset = field(default_factory=frozenset)
    month: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "statuses", _coerce(self.statuses, PaymentStatus, "status"))
        object.__setattr__(self, "types", _coerce(self.types, PaymentType, "type"))
        if self.month is not None and not MONTH_PATTERN.match(self.month):
            raise InvalidFilterError(f"Month must be formatted YYYY-MM, got {self.month!r}")

    @classmethod
    def outstanding(cls) -> "PaymentFilters":
        """Filters matching obligations that still need paying."""
        return cls(statuses={PaymentStatus.PENDING, PaymentStatus.OVERDUE})

    @property
    def is_empty(self) -> bool:
        return not self.statuses and not self.types and self.month is None

    def matches(self, payment: Payment) -> bool:
        """Check a payment against the filters."""
        if self.statuses and payment.status not in self.statuses:
            return False
        if self.types and payment.payment_type not in self.types:
            return False
        if self.month is not None and payment.month != self.month:
            return False
        return True


__all__ = ["MONTH_PATTERN", "PaymentFilters"]
