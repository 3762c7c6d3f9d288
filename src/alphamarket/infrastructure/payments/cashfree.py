# src/alphamarket/infrastructure/payments/cashfree.py
"""
Thin async client for the Cashfree Payment Gateway (PG) REST API.

Only the calls the checkout flow needs: create an order, read it back, list
its payment attempts, and verify webhook signatures.
"""

import base64
import hashlib
import hmac
import logging
from typing import Any, Dict, List, Optional

import httpx

from alphamarket.domain.errors import GatewayError

log = logging.getLogger(__name__)

CASHFREE_URLS = {
    "production": "https://api.cashfree.com/pg",
    "sandbox": "https://sandbox.cashfree.com/pg",
}


class CashfreeClient:
    def __init__(
        self,
        app_id: Optional[str],
        secret_key: Optional[str],
        env: str = "sandbox",
        api_version: str = "2023-08-01",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.app_id = app_id
        self.secret_key = secret_key
        self.env = "production" if (env or "").lower() == "production" else "sandbox"
        self.api_version = api_version
        self._transport = transport
        self._timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.app_id and self.secret_key)

    @property
    def base_url(self) -> str:
        return CASHFREE_URLS[self.env]

    def _headers(self) -> Dict[str, str]:
        return {
            "x-client-id": self.app_id or "",
            "x-client-secret": self.secret_key or "",
            "x-api-version": self.api_version,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Any:
        if not self.is_configured:
            raise GatewayError("Payment gateway is not configured")
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, transport=self._transport, timeout=self._timeout
            ) as client:
                response = await client.request(method, path, json=json, headers=self._headers())
        except httpx.HTTPError as e:
            log.error(f"Cashfree {method} {path} failed: {e}")
            raise GatewayError("Payment gateway is unreachable") from e

        if response.status_code >= 400:
            message = "Payment gateway error"
            try:
                message = response.json().get("message") or message
            except ValueError:
                pass
            log.error(f"Cashfree {method} {path} -> {response.status_code}: {message}")
            raise GatewayError(message, upstream_status=response.status_code)
        return response.json()

    async def create_order(
        self,
        order_id: str,
        amount: float,
        customer: Dict[str, str],
        return_url: str,
        notify_url: Optional[str] = None,
        currency: str = "INR",
    ) -> Dict[str, Any]:
        order_meta = {"return_url": return_url}
        if notify_url:
            order_meta["notify_url"] = notify_url
        body = {
            "order_id": order_id,
            "order_amount": round(float(amount), 2),
            "order_currency": currency,
            "customer_details": customer,
            "order_meta": order_meta,
        }
        data = await self._request("POST", "/orders", json=body)
        log.info(f"Cashfree order created: {order_id}")
        return data

    async def fetch_order(self, order_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/orders/{order_id}")

    async def fetch_payments(self, order_id: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"/orders/{order_id}/payments")
        return data if isinstance(data, list) else []

    def compute_signature(self, raw_body: bytes, timestamp: str) -> str:
        message = timestamp.encode("utf-8") + raw_body
        digest = hmac.new((self.secret_key or "").encode("utf-8"), message, hashlib.sha256).digest()
        return base64.b64encode(digest).decode("ascii")

    def verify_webhook_signature(self, raw_body: bytes, signature: Optional[str], timestamp: Optional[str]) -> bool:
        """Cashfree signs `timestamp + rawBody` with the secret key (HMAC-SHA256, base64)."""
        if not (self.secret_key and signature and timestamp):
            return False
        expected = self.compute_signature(raw_body, timestamp)
        return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))
