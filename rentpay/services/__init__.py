"""Payment lifecycle services, stores and database session management."""

from rentpay.services.db import get_async_session, get_engine, get_session_factory
from rentpay.services.errors import (
    AppError,
    DuplicateObligationError,
    GatewayUnavailableError,
    InvalidFilterError,
    InvalidStateError,
    MismatchError,
    NotFoundError,
)
from rentpay.services.filters import PaymentFilters
from rentpay.services.payment_service import OrderReceipt, PaymentService
from rentpay.services.payment_stats import PaymentStats, compute_stats
from rentpay.services.payment_watcher import PaymentWatcher, snapshot_fingerprint

__all__ = [
    "AppError",
    "DuplicateObligationError",
    "GatewayUnavailableError",
    "InvalidFilterError",
    "InvalidStateError",
    "MismatchError",
    "NotFoundError",
    "OrderReceipt",
    "PaymentFilters",
    "PaymentService",
    "PaymentStats",
    "PaymentWatcher",
    "compute_stats",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "snapshot_fingerprint",
]
