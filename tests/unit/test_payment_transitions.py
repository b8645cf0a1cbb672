"""Unit tests for status transitions and late fees."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from rentpay.models import PaymentStatus
from rentpay.services.errors import InvalidStateError
from rentpay.services.payment_transitions import (
    calculate_late_fee,
    can_transition,
    days_overdue,
    ensure_transition,
    sources_of,
)


@pytest.mark.unit
class TestTransitions:
    """Tests for the allowed status graph."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (PaymentStatus.PENDING, PaymentStatus.OVERDUE),
            (PaymentStatus.PENDING, PaymentStatus.PAID),
            (PaymentStatus.PENDING, PaymentStatus.FAILED),
            (PaymentStatus.OVERDUE, PaymentStatus.PAID),
            (PaymentStatus.FAILED, PaymentStatus.PENDING),
        ],
    )
    def test_allowed(self, current, target):
        assert can_transition(current, target)
        ensure_transition(current, target)

    @pytest.mark.parametrize("target", list(PaymentStatus))
    def test_paid_is_terminal(self, target):
        assert not can_transition(PaymentStatus.PAID, target)

    def test_overdue_cannot_go_back_to_pending(self):
        with pytest.raises(InvalidStateError):
            ensure_transition(PaymentStatus.OVERDUE, PaymentStatus.PENDING)

    def test_overdue_cannot_fail(self):
        assert not can_transition(PaymentStatus.OVERDUE, PaymentStatus.FAILED)

    def test_sources_of_paid(self):
        assert sources_of(PaymentStatus.PAID) == {PaymentStatus.PENDING, PaymentStatus.OVERDUE}

    def test_sources_of_failed(self):
        assert sources_of(PaymentStatus.FAILED) == {PaymentStatus.PENDING}


@pytest.mark.unit
class TestLateFee:
    """Tests for overdue day counting and late fee calculation."""

    def test_days_overdue_counts_whole_days(self):
        due = datetime(2025, 3, 1, tzinfo=timezone.utc)
        assert days_overdue(due, due + timedelta(days=10, hours=5)) == 10

    def test_days_overdue_negative_before_due(self):
        due = datetime(2025, 3, 1, tzinfo=timezone.utc)
        assert days_overdue(due, due - timedelta(days=2)) < 0

    def test_fee_is_days_times_rate(self):
        assert calculate_late_fee(10, Decimal("50")) == Decimal("500")

    @pytest.mark.parametrize("days", [-5, -1, 0])
    def test_fee_never_negative(self, days):
        assert calculate_late_fee(days, Decimal("50")) == Decimal("0")
