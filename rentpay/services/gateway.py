"""Payment gateway client.

``GatewayClient`` is the narrow interface the lifecycle manager depends on.
``RazorpayGateway`` implements it against the Razorpay REST API: orders are
created server-side, checkout happens in the hosted UI, and the checkout
callback is authenticated by an HMAC-SHA256 signature over
``"{order_id}|{payment_id}"`` keyed with the API secret.
"""

import hashlib
import hmac
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx

from rentpay.services.config import Settings
from rentpay.services.errors import GatewayUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class GatewayOrder:
    """Order created at the gateway for one checkout attempt."""

    order_id: str
    amount: Decimal
    """Amount in major currency units."""

    amount_minor: int
    """Amount in minor units (paise) as the gateway reports it."""

    currency: str
    signing_key_id: str
    """Public key id the checkout UI must be opened with."""

    notes: dict[str, Any] = field(default_factory=dict)


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to integer minor units (half-up)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_signature(secret: str, message: str | bytes) -> str:
    """Hex HMAC-SHA256 of message keyed with secret."""
    if isinstance(message, str):
        message = message.encode()
    return hmac.new(secret.encode(), msg=message, digestmod=hashlib.sha256).hexdigest()


class GatewayClient(ABC):
    """Operations the lifecycle manager needs from a payment gateway."""

    @abstractmethod
    async def create_order(
        self, amount: Decimal, currency: str, metadata: dict[str, str]
    ) -> GatewayOrder:
        """Create an order for amount (major units).

        Raises:
            GatewayUnavailableError: If the gateway cannot be reached
        """

    @abstractmethod
    async def verify_signature(
        self, order_id: str, gateway_payment_id: str, signature: str
    ) -> bool:
        """Check a checkout callback signature. False means verification failed.

        Raises:
            GatewayUnavailableError: If a follow-up gateway call cannot complete
        """

    @abstractmethod
    async def fetch_order(self, order_id: str) -> dict[str, Any]:
        """Fetch the gateway's view of an order."""

    @abstractmethod
    def verify_webhook(self, body: bytes, signature: str | None) -> bool:
        """Check the signature of a raw webhook body."""


class RazorpayGateway(GatewayClient):
    """Razorpay REST client using httpx."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: str = "",
        api_url: str = "https://api.razorpay.com",
        timeout: float = 10.0,
        linked_account_id: str | None = None,
        platform_fee_percent: Decimal = Decimal("5"),
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.linked_account_id = linked_account_id
        self.platform_fee_percent = Decimal(platform_fee_percent)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayGateway":
        """Build a client from application settings."""
        return cls(
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            webhook_secret=settings.razorpay_webhook_secret,
            api_url=settings.razorpay_api_url,
            timeout=settings.gateway_timeout_seconds,
            linked_account_id=settings.landlord_linked_account_id,
            platform_fee_percent=settings.platform_fee_percent,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        try:
            response = await self.client.request(method, path, json=payload)
        except httpx.HTTPError as e:
            logger.error("Gateway %s %s failed: %s", method, path, e)
            raise GatewayUnavailableError(f"Gateway request failed: {e}") from e

        if response.is_error:
            try:
                description = response.json().get("error", {}).get("description")
            except ValueError:
                description = None
            logger.error(
                "Gateway %s %s returned %d: %s", method, path, response.status_code, description
            )
            raise GatewayUnavailableError(
                description or f"Gateway returned HTTP {response.status_code}"
            )
        return response.json()

    def _route_transfers(self, amount_minor: int, currency: str, metadata: dict[str, str]) -> list:
        # Landlord share after the platform fee, rounded down to whole paise
        landlord_amount = int(
            amount_minor * (Decimal(100) - self.platform_fee_percent) / Decimal(100)
        )
        return [
            {
                "account": self.linked_account_id,
                "amount": landlord_amount,
                "currency": currency,
                "notes": {
                    "propertyId": metadata.get("propertyId", ""),
                    "tenantId": metadata.get("tenantId", ""),
                },
            }
        ]

    async def create_order(
        self, amount: Decimal, currency: str, metadata: dict[str, str]
    ) -> GatewayOrder:
        amount_minor = to_minor_units(amount)
        notes = {key: str(value) for key, value in metadata.items()}
        if self.linked_account_id:
            notes["route_transfers"] = json.dumps(
                self._route_transfers(amount_minor, currency, metadata)
            )

        data = await self._request(
            "POST",
            "/v1/orders",
            {"amount": amount_minor, "currency": currency, "notes": notes},
        )
        logger.info("Created gateway order %s for %s %s", data["id"], amount, currency)
        return GatewayOrder(
            order_id=data["id"],
            amount=Decimal(data["amount"]) / 100,
            amount_minor=int(data["amount"]),
            currency=data.get("currency", currency),
            signing_key_id=self.key_id,
            notes=data.get("notes") or {},
        )

    async def verify_signature(
        self, order_id: str, gateway_payment_id: str, signature: str
    ) -> bool:
        if not (order_id and gateway_payment_id and signature):
            return False

        expected = compute_signature(self.key_secret, f"{order_id}|{gateway_payment_id}")
        if not hmac.compare_digest(expected, signature):
            logger.warning("Signature mismatch for order %s", order_id)
            return False

        await self._execute_route_transfers(order_id, gateway_payment_id)
        return True

    async def _execute_route_transfers(self, order_id: str, gateway_payment_id: str) -> None:
        order = await self.fetch_order(order_id)
        raw = (order.get("notes") or {}).get("route_transfers")
        if not raw:
            return
        try:
            transfers = json.loads(raw)
        except ValueError:
            logger.warning("Order %s carries unreadable route transfers", order_id)
            return
        if transfers:
            await self._request(
                "POST", f"/v1/payments/{gateway_payment_id}/transfers", {"transfers": transfers}
            )
            logger.info("Executed %d route transfer(s) for order %s", len(transfers), order_id)

    async def fetch_order(self, order_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/v1/orders/{order_id}")

    def verify_webhook(self, body: bytes, signature: str | None) -> bool:
        if not self.webhook_secret or not signature:
            return False
        return hmac.compare_digest(compute_signature(self.webhook_secret, body), signature)


__all__ = [
    "GatewayClient",
    "GatewayOrder",
    "RazorpayGateway",
    "compute_signature",
    "to_minor_units",
]
