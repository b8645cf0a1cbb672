"""SQLAlchemy base model with common fields and model exports."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from rentpay.models.types import UTCDateTime

# Base class for all models
Base = declarative_base()


def generate_id() -> str:
    """Generate an opaque record identifier."""
    return uuid.uuid4().hex


class BaseModel:
    """Base model with opaque string id and timestamp fields."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
# This must be after Base declaration to avoid circular imports
from rentpay.models.payment import (  # noqa: E402
    PROJECTED_PAYMENT_ID,
    Payment,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
)
from rentpay.models.tenant import Tenant, TenantStatus  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "generate_id",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "PaymentType",
    "PROJECTED_PAYMENT_ID",
    "Tenant",
    "TenantStatus",
]
