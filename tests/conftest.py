"""Pytest configuration: database, gateway and store fixtures."""

import hmac
import logging
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Set test database URL BEFORE any imports from rentpay
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rentpay.models import (
    Base,
    Payment,
    PaymentStatus,
    PaymentType,
    Tenant,
    TenantStatus,
    generate_id,
)
from rentpay.services.db import create_engine_for
from rentpay.services.errors import (
    DuplicateObligationError,
    GatewayUnavailableError,
    NotFoundError,
)
from rentpay.services.gateway import (
    GatewayClient,
    GatewayOrder,
    compute_signature,
    to_minor_units,
)
from rentpay.services.locks import PaymentLocks
from rentpay.services.payment_service import PaymentService
from rentpay.services.record_store import (
    UPDATABLE_FIELDS,
    PaymentStore,
    SqlPaymentStore,
    SqlTenantStore,
    TenantStore,
    expected_statuses,
)

# Mid-month so the current billing period is 2025-03, due 2025-04-01
FIXED_NOW = datetime(2025, 3, 15, 10, 0, tzinfo=timezone.utc)


class FixedClock:
    """Controllable clock for the payment service."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeGateway(GatewayClient):
    """In-process gateway: deterministic order ids, real HMAC signatures."""

    def __init__(self, key_id: str = "rzp_test_key", key_secret: str = "test_secret"):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = "test_webhook_secret"
        self.orders: dict[str, dict] = {}
        self.created: list[tuple[Decimal, str, dict]] = []
        self.verify_calls = 0
        self.unavailable = False

    def sign(self, order_id: str, gateway_payment_id: str) -> str:
        """Signature the hosted checkout would return for a successful payment."""
        return compute_signature(self.key_secret, f"{order_id}|{gateway_payment_id}")

    async def create_order(self, amount, currency, metadata):
        if self.unavailable:
            raise GatewayUnavailableError("Gateway unreachable")
        order_id = f"order_{len(self.created) + 1}"
        self.created.append((Decimal(amount), currency, dict(metadata)))
        self.orders[order_id] = {
            "id": order_id,
            "amount": to_minor_units(amount),
            "currency": currency,
            "status": "created",
            "attempts": 0,
            "notes": dict(metadata),
        }
        return GatewayOrder(
            order_id=order_id,
            amount=Decimal(amount),
            amount_minor=to_minor_units(amount),
            currency=currency,
            signing_key_id=self.key_id,
            notes=dict(metadata),
        )

    async def verify_signature(self, order_id, gateway_payment_id, signature):
        self.verify_calls += 1
        if self.unavailable:
            raise GatewayUnavailableError("Gateway unreachable")
        return hmac.compare_digest(self.sign(order_id, gateway_payment_id), signature or "")

    async def fetch_order(self, order_id):
        if self.unavailable or order_id not in self.orders:
            raise GatewayUnavailableError(f"Order {order_id} unavailable")
        return self.orders[order_id]

    def verify_webhook(self, body, signature):
        if not signature:
            return False
        return hmac.compare_digest(compute_signature(self.webhook_secret, body), signature)


class InMemoryPaymentStore(PaymentStore):
    """Dict-backed payment store; loop-agnostic, so usable behind TestClient."""

    def __init__(self):
        self.records: dict[str, Payment] = {}
        self.batch_calls = 0

    async def get(self, payment_id):
        return self.records.get(payment_id)

    async def query(self, tenant_id=None, filters=None, property_id=None):
        found = [
            p
            for p in self.records.values()
            if (tenant_id is None or p.tenant_id == tenant_id)
            and (property_id is None or p.property_id == property_id)
            and (filters is None or filters.matches(p))
        ]
        return sorted(found, key=lambda p: p.created_at, reverse=True)

    async def insert(self, payment):
        for existing in self.records.values():
            if (
                existing.tenant_id == payment.tenant_id
                and existing.payment_type == payment.payment_type
                and existing.month == payment.month
            ):
                raise DuplicateObligationError()
        self.records[payment.id] = payment
        return payment.id

    async def update(self, payment_id, fields, expected_status=None):
        return await self.batch_update([(payment_id, fields)], expected_status) == 1

    async def batch_update(self, updates, expected_status=None):
        for payment_id, fields in updates:
            if set(fields) - UPDATABLE_FIELDS:
                raise ValueError("Fields cannot be updated")
            if payment_id not in self.records:
                raise NotFoundError(f"Payment {payment_id} not found")
        expected = expected_statuses(expected_status)
        self.batch_calls += 1
        written = 0
        for payment_id, fields in updates:
            payment = self.records[payment_id]
            if expected is not None and payment.status not in expected:
                continue
            for name, value in fields.items():
                setattr(payment, name, value)
            payment.updated_at = payment.updated_at + timedelta(microseconds=1)
            written += 1
        return written


class InMemoryTenantStore(TenantStore):
    """Dict-backed tenant store."""

    def __init__(self):
        self.records: dict[str, Tenant] = {}

    def add(self, tenant: Tenant) -> Tenant:
        self.records[tenant.id] = tenant
        return tenant

    async def get(self, tenant_id):
        return self.records.get(tenant_id)


def build_tenant(
    tenant_id: str = "tenant_1",
    rent=Decimal("10000"),
    status: TenantStatus = TenantStatus.ACTIVE,
    property_id: str = "prop_1",
    room_id: str = "room_101",
) -> Tenant:
    """Tenant instance with every column set (defaults only apply on flush)."""
    return Tenant(
        id=tenant_id,
        user_id=f"user_{tenant_id}",
        property_id=property_id,
        room_id=room_id,
        rent=rent,
        status=status,
        created_at=FIXED_NOW,
        updated_at=FIXED_NOW,
    )


def build_payment(**overrides) -> Payment:
    """Persistable payment with sensible defaults."""
    values = {
        "id": generate_id(),
        "tenant_id": "tenant_1",
        "property_id": "prop_1",
        "room_id": "room_101",
        "amount": Decimal("10000"),
        "payment_type": PaymentType.RENT,
        "status": PaymentStatus.PENDING,
        "month": "2025-02",
        "due_date": datetime(2025, 3, 1, tzinfo=timezone.utc),
        "created_at": FIXED_NOW,
        "updated_at": FIXED_NOW,
    }
    values.update(overrides)
    return Payment(**values)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def payment_store():
    return InMemoryPaymentStore()


@pytest.fixture
def tenant_store():
    store = InMemoryTenantStore()
    store.add(build_tenant())
    return store


@pytest.fixture
def service(payment_store, tenant_store, gateway, clock):
    """Payment service over in-memory stores."""
    return PaymentService(
        payments=payment_store,
        tenants=tenant_store,
        gateway=gateway,
        clock=clock,
        locks=PaymentLocks(),
    )


# SQL-backed fixtures
@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with the schema created."""
    engine = create_engine_for("sqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def sql_tenant(session):
    """Active tenant paying 10000 a month, persisted."""
    tenant = build_tenant()
    session.add(tenant)
    await session.commit()
    return tenant


@pytest.fixture
def sql_service(session, gateway, clock):
    """Payment service over SQL stores sharing one session."""
    return PaymentService(
        payments=SqlPaymentStore(session),
        tenants=SqlTenantStore(session),
        gateway=gateway,
        clock=clock,
        locks=PaymentLocks(),
    )


@pytest.fixture
def make_payment():
    return build_payment


@pytest.fixture
def make_tenant():
    return build_tenant


@pytest.fixture
def restore_root_logging():
    """Put the root logger and httpx level back after a test reconfigures them."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    httpx_level = logging.getLogger("httpx").level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("httpx").setLevel(httpx_level)
