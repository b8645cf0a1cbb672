"""Tenant ORM model: the tenancy a tenant's rent obligations derive from."""

from decimal import Decimal
from enum import Enum

from sqlalchemy import Enum as SQLEnum
from sqlalchemy import Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from rentpay.models import Base, BaseModel


class TenantStatus(str, Enum):
    """Status of a tenancy."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    LEFT = "left"
    SUSPENDED = "suspended"
    EVICTED = "evicted"


class Tenant(Base, BaseModel):
    """Model representing a tenant's occupancy of a room.

    Only one active tenancy per tenant is expected; the monthly rent figure
    stored here drives the current-month obligation projection.
    """

    __tablename__ = "tenants"

    user_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        index=True,
        comment="Identifier of the user account holding the tenancy",
    )
    property_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    room_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    rent: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Monthly rent amount",
    )
    deposit: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    status: Mapped[TenantStatus] = mapped_column(
        SQLEnum(TenantStatus),
        nullable=False,
        default=TenantStatus.ACTIVE,
    )

    __table_args__ = (Index("idx_tenant_property_status", "property_id", "status"),)

    @property
    def is_active(self) -> bool:
        return self.status == TenantStatus.ACTIVE

    def __repr__(self) -> str:
        return (
            f"<Tenant(id={self.id}, user_id={self.user_id}, property_id={self.property_id}, "
            f"rent={self.rent}, status={self.status})>"
        )


__all__ = ["Tenant", "TenantStatus"]
