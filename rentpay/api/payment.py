"""Payment API endpoints.

Exposes the payment lifecycle to the app:
- Current month obligation, listings and statistics
- Gateway order creation and checkout verification
- Overdue sweep trigger and gateway webhook receiver
"""

import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from rentpay.models import PaymentMethod, PaymentStatus, PaymentType
from rentpay.services.config import get_settings
from rentpay.services.db import get_async_session
from rentpay.services.errors import AppError, raise_app_error
from rentpay.services.filters import PaymentFilters
from rentpay.services.gateway import GatewayClient, RazorpayGateway
from rentpay.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


# Response schemas
class PaymentResponse(BaseModel):
    """A persisted payment or the projected current month obligation."""

    id: str
    tenant_id: str
    property_id: str
    room_id: str | None = None
    amount: Decimal
    payment_type: PaymentType
    status: PaymentStatus
    month: str
    due_date: datetime
    paid_at: datetime | None = None
    late_fee: Decimal | None = None
    overdue_days: int | None = None
    payment_method: PaymentMethod | None = None
    transaction_id: str | None = None
    description: str | None = None
    notes: str | None = None
    is_projection: bool = False

    model_config = ConfigDict(from_attributes=True)


class PaymentStatsResponse(BaseModel):
    """Aggregated payment statistics."""

    total_payments: int
    total_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    overdue_amount: Decimal
    average_payment_delay: float
    total_late_payments: int
    total_late_fees: Decimal

    model_config = ConfigDict(from_attributes=True)


class CreateObligationRequest(BaseModel):
    """Owner-issued obligation for a tenant."""

    amount: Decimal = Field(ge=0)
    month: str
    due_date: datetime
    payment_type: PaymentType = PaymentType.RENT
    description: str | None = None
    notes: str | None = None


class OrderRequest(BaseModel):
    """Tenant starting an online payment."""

    tenant_id: str
    property_id: str


class OrderResponse(BaseModel):
    """Data needed to open the hosted checkout."""

    payment_id: str
    order_id: str
    amount: Decimal
    currency: str
    key_id: str


class VerifyRequest(BaseModel):
    """Checkout callback forwarded by the app."""

    order_id: str
    gateway_payment_id: str
    signature: str


class VerifyResponse(BaseModel):
    """Verification outcome."""

    success: bool
    payment: PaymentResponse


class SweepResponse(BaseModel):
    """Overdue sweep result."""

    marked: int


# Dependencies
_gateway: Optional[GatewayClient] = None


def get_gateway() -> GatewayClient:
    """Process-wide gateway client built from settings."""
    global _gateway
    if _gateway is None:
        _gateway = RazorpayGateway.from_settings(get_settings())
    return _gateway


async def close_gateway() -> None:
    """Release the process-wide gateway client."""
    global _gateway
    if isinstance(_gateway, RazorpayGateway):
        await _gateway.aclose()
    _gateway = None


async def get_payment_service(
    session: AsyncSession = Depends(get_async_session),
    gateway: GatewayClient = Depends(get_gateway),
) -> PaymentService:
    """Payment service bound to the request's database session."""
    return PaymentService.for_session(session, gateway, get_settings())


# Tenant views
@router.get("/tenants/{tenant_id}/current", response_model=Optional[PaymentResponse])
async def get_current_obligation(
    tenant_id: str, service: PaymentService = Depends(get_payment_service)
) -> Optional[PaymentResponse]:
    """Current month rent obligation, or null when the tenant owes nothing."""
    payment = await service.get_current_obligation(tenant_id)
    if payment is None:
        return None
    return PaymentResponse.model_validate(payment)


@router.get("/tenants/{tenant_id}", response_model=list[PaymentResponse])
async def list_payments(
    tenant_id: str,
    status: list[str] = Query(default=[]),
    payment_type: list[str] = Query(default=[], alias="type"),
    month: Optional[str] = None,
    service: PaymentService = Depends(get_payment_service),
) -> list[PaymentResponse]:
    """List a tenant's payments, filtered by status, type and month."""
    try:
        filters = PaymentFilters(statuses=status, types=payment_type, month=month)
    except AppError as e:
        raise_app_error(e)
    payments = await service.list_payments(tenant_id, filters)
    return [PaymentResponse.model_validate(p) for p in payments]


@router.post("/tenants/{tenant_id}", response_model=PaymentResponse, status_code=201)
async def create_obligation(
    tenant_id: str,
    body: CreateObligationRequest,
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    """Create an obligation for a tenant."""
    try:
        payment = await service.create_obligation(
            tenant_id,
            amount=body.amount,
            month=body.month,
            due_date=body.due_date,
            payment_type=body.payment_type,
            description=body.description,
            notes=body.notes,
        )
    except AppError as e:
        raise_app_error(e)
    return PaymentResponse.model_validate(payment)


@router.get("/tenants/{tenant_id}/pending", response_model=list[PaymentResponse])
async def list_pending(
    tenant_id: str, service: PaymentService = Depends(get_payment_service)
) -> list[PaymentResponse]:
    """Outstanding payments, earliest due first."""
    payments = await service.list_pending(tenant_id)
    return [PaymentResponse.model_validate(p) for p in payments]


@router.get("/tenants/{tenant_id}/stats", response_model=PaymentStatsResponse)
async def get_tenant_stats(
    tenant_id: str, service: PaymentService = Depends(get_payment_service)
) -> PaymentStatsResponse:
    """Payment statistics for a tenant."""
    stats = await service.get_tenant_payment_stats(tenant_id)
    return PaymentStatsResponse.model_validate(stats)


@router.get("/properties/{property_id}/stats", response_model=PaymentStatsResponse)
async def get_property_stats(
    property_id: str, service: PaymentService = Depends(get_payment_service)
) -> PaymentStatsResponse:
    """Payment statistics for a property."""
    stats = await service.get_property_payment_stats(property_id)
    return PaymentStatsResponse.model_validate(stats)


# Gateway flow
@router.get("/orders/{order_id}")
async def get_order_status(
    order_id: str, service: PaymentService = Depends(get_payment_service)
) -> dict[str, Any]:
    """Gateway order status."""
    try:
        order = await service.fetch_order_status(order_id)
    except AppError as e:
        raise_app_error(e)
    return {
        "order_id": order.get("id", order_id),
        "status": order.get("status"),
        "amount": order.get("amount"),
        "currency": order.get("currency"),
        "attempts": order.get("attempts"),
    }


@router.post("/sweep", response_model=SweepResponse)
async def sweep_overdue(service: PaymentService = Depends(get_payment_service)) -> SweepResponse:
    """Mark past-due payments overdue (for a scheduler, not for tenants)."""
    marked = await service.mark_overdue_payments()
    return SweepResponse(marked=marked)


@router.post("/webhooks/gateway")
async def gateway_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(default=None),
    gateway: GatewayClient = Depends(get_gateway),
) -> dict:
    """Receive gateway webhooks.

    Events are authenticated and logged; payment state only changes through
    checkout verification.
    """
    body = await request.body()
    if not gateway.verify_webhook(body, x_razorpay_signature):
        logger.warning("Rejected gateway webhook with invalid signature")
        raise HTTPException(
            status_code=400,
            detail={"error": {"code": "invalid_signature", "message": "Invalid signature"}},
        )
    try:
        event = json.loads(body)
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail={"error": {"code": "invalid_payload", "message": "Body is not JSON"}},
        ) from None

    logger.info("Gateway webhook received: %s", event.get("event", "unknown"))
    return {"status": "ok"}


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: str, service: PaymentService = Depends(get_payment_service)
) -> PaymentResponse:
    """Get a payment by id."""
    try:
        payment = await service.get_payment(payment_id)
    except AppError as e:
        raise_app_error(e)
    return PaymentResponse.model_validate(payment)


@router.post("/{payment_id}/orders", response_model=OrderResponse)
async def create_order(
    payment_id: str,
    body: OrderRequest,
    service: PaymentService = Depends(get_payment_service),
) -> OrderResponse:
    """Create a gateway order for a payment (or for the projected current month)."""
    try:
        receipt = await service.process_online_payment(
            payment_id, body.tenant_id, body.property_id
        )
    except AppError as e:
        raise_app_error(e)
    return OrderResponse(
        payment_id=receipt.payment_id,
        order_id=receipt.order_id,
        amount=receipt.amount,
        currency=receipt.currency,
        key_id=receipt.signing_key_id,
    )


@router.post("/{payment_id}/verify", response_model=VerifyResponse)
async def verify_payment(
    payment_id: str,
    body: VerifyRequest,
    service: PaymentService = Depends(get_payment_service),
) -> VerifyResponse:
    """Verify a checkout callback and apply its outcome."""
    try:
        success = await service.verify_payment(
            payment_id, body.order_id, body.gateway_payment_id, body.signature
        )
        payment = await service.get_payment(payment_id)
    except AppError as e:
        raise_app_error(e)
    return VerifyResponse(success=success, payment=PaymentResponse.model_validate(payment))
