# src/alphamarket/infrastructure/kyc/sandbox.py
"""
Sandbox.co.in KYC API: Aadhaar offline-eKYC (OTP) and PAN verification.

The access token from `/authenticate` is valid for 24h; we reuse it for 22h.
Every endpoint answers HTTP 200 with a body-level `code`; anything other than
`code == 200` is treated as a failure.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from alphamarket.domain.errors import GatewayError

log = logging.getLogger(__name__)

TOKEN_TTL_SECONDS = 22 * 60 * 60
CONSENT_REASON = "KYC verification for investment advisory subscription"


class SandboxKycClient:
    def __init__(
        self,
        api_key: Optional[str],
        api_secret: Optional[str],
        base_url: str = "https://api.sandbox.co.in",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._token: Optional[str] = None
        self._token_expiry: float = 0.0

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_secret)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, transport=self._transport, timeout=self._timeout)

    @staticmethod
    def _error_message(data: Dict[str, Any], default: str) -> str:
        inner = data.get("data") if isinstance(data.get("data"), dict) else {}
        return inner.get("message") or data.get("message") or default

    async def authenticate(self) -> str:
        if self._token and time.time() < self._token_expiry:
            return self._token
        if not self.is_configured:
            raise GatewayError("KYC provider credentials are not configured")

        async with self._client() as client:
            try:
                response = await client.post(
                    "/authenticate",
                    headers={"x-api-key": self.api_key, "x-api-secret": self.api_secret, "Content-Type": "application/json"},
                )
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                log.error(f"Sandbox KYC authentication request failed: {e}")
                raise GatewayError("KYC provider is unreachable") from e

        if not isinstance(data, dict):
            data = {}
        token = (data.get("data") or {}).get("access_token")
        if data.get("code") != 200 or not token:
            log.error(f"Sandbox KYC authentication failed: code={data.get('code')}")
            raise GatewayError("Failed to authenticate with KYC provider")

        self._token = token
        self._token_expiry = time.time() + TOKEN_TTL_SECONDS
        log.info("Sandbox KYC authenticated successfully")
        return token

    async def _post(self, path: str, body: Dict[str, Any], failure_message: str) -> Dict[str, Any]:
        token = await self.authenticate()
        headers = {"Authorization": token, "x-api-key": self.api_key, "Content-Type": "application/json"}
        async with self._client() as client:
            try:
                response = await client.post(path, json=body, headers=headers)
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                log.error(f"Sandbox KYC POST {path} failed: {e}")
                raise GatewayError("KYC provider is unreachable") from e

        if not isinstance(data, dict):
            data = {}
        if data.get("code") != 200:
            if data.get("code") in (401, 403):
                # Force re-authentication on the next call.
                self._token = None
            message = self._error_message(data, failure_message)
            log.warning(f"Sandbox KYC POST {path} rejected: code={data.get('code')} message={message}")
            raise GatewayError(message, upstream_status=data.get("code"))
        return data

    async def send_aadhaar_otp(self, aadhaar_number: str) -> Dict[str, Any]:
        data = await self._post(
            "/kyc/aadhaar/okyc/otp",
            {
                "@entity": "in.co.sandbox.kyc.aadhaar.okyc.otp.request",
                "aadhaar_number": aadhaar_number,
                "consent": "Y",
                "reason": CONSENT_REASON,
            },
            "Failed to send Aadhaar OTP",
        )
        payload = data.get("data") or {}
        return {
            "reference_id": str(payload.get("reference_id", "")),
            "message": payload.get("message") or "OTP sent successfully",
            "transaction_id": data.get("transaction_id"),
        }

    async def verify_aadhaar_otp(self, reference_id: str, otp: str) -> Dict[str, Any]:
        data = await self._post(
            "/kyc/aadhaar/okyc/otp/verify",
            {
                "@entity": "in.co.sandbox.kyc.aadhaar.okyc.request",
                "reference_id": str(reference_id),
                "otp": otp,
            },
            "Failed to verify Aadhaar OTP",
        )
        payload = data.get("data") or {}
        addr = payload.get("address") or {}
        if isinstance(addr, dict):
            parts = [addr.get(k) for k in ("house", "street", "locality", "vtc", "district", "state", "pincode")]
            full_address = ", ".join(str(p) for p in parts if p)
        else:
            full_address = str(addr)
        return {
            "name": payload.get("name") or "",
            "dob": payload.get("dob") or payload.get("date_of_birth") or "",
            "gender": payload.get("gender") or "",
            "address": full_address,
            "transaction_id": data.get("transaction_id"),
        }

    async def verify_pan(self, pan: str, name_as_pan: str, date_of_birth: str) -> Dict[str, Any]:
        data = await self._post(
            "/kyc/pan/verify",
            {
                "@entity": "in.co.sandbox.kyc.pan_verification.request",
                "pan": pan.upper(),
                "name_as_per_pan": name_as_pan.upper(),
                "date_of_birth": date_of_birth,
                "consent": "Y",
                "reason": CONSENT_REASON,
            },
            "Failed to verify PAN",
        )
        payload = data.get("data") or {}
        return {
            "pan": payload.get("pan") or pan.upper(),
            "status": payload.get("status") or "unknown",
            "category": payload.get("category") or "unknown",
            "name_match": payload.get("name_as_per_pan_match") is True,
            "dob_match": payload.get("date_of_birth_match") is True,
            "aadhaar_linked": payload.get("aadhaar_seeding_status") == "y",
            "transaction_id": data.get("transaction_id"),
        }
