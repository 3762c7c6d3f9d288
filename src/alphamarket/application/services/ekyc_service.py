# src/alphamarket/application/services/ekyc_service.py
"""
eKYC for a subscription: Aadhaar OTP first, then PAN.

The step is derived from the latest verification row of each kind, so
the ordering is enforced here rather than trusted to the client. Upstream
rejections are persisted as `failed` rows before the error propagates;
the investor retries by submitting again.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from alphamarket.domain.clock import utcnow
from alphamarket.domain.entities import EkycKind, EkycStatus, EkycProgress
from alphamarket.domain.errors import DomainError, GatewayError
from alphamarket.domain.value_objects import AadhaarNumber, PanNumber, Otp
from alphamarket.infrastructure.db.models import EkycVerification, Subscription
from alphamarket.infrastructure.db.repository import EkycRepository
from alphamarket.infrastructure.kyc.sandbox import SandboxKycClient
from .subscription_service import SubscriptionService

log = logging.getLogger(__name__)


class EkycService:
    def __init__(self, kyc_client: SandboxKycClient, subscription_service: SubscriptionService):
        self.kyc = kyc_client
        self.subscriptions = subscription_service

    @staticmethod
    def _current(repo: EkycRepository, subscription_id: str, kind: EkycKind) -> Optional[EkycVerification]:
        """A verified row wins over later retries; otherwise the latest attempt."""
        return repo.find_verified(subscription_id, kind) or repo.latest(subscription_id, kind)

    def _progress(self, repo: EkycRepository, subscription_id: str) -> EkycProgress:
        aadhaar = self._current(repo, subscription_id, EkycKind.AADHAAR)
        pan = self._current(repo, subscription_id, EkycKind.PAN)
        return EkycProgress(
            aadhaar_status=aadhaar.status.value if aadhaar else None,
            pan_status=pan.status.value if pan else None,
        )

    def _sync_completion(self, repo: EkycRepository, subscription: Subscription) -> None:
        if self._progress(repo, subscription.id).is_complete and not subscription.ekyc_done:
            subscription.ekyc_done = True
            log.info(f"eKYC complete for subscription {subscription.id}")

    # --- Aadhaar ---

    async def send_aadhaar_otp(self, session: Session, user_id: str, subscription_id: str, aadhaar_number: str) -> Dict[str, Any]:
        subscription = self.subscriptions.get_owned(session, subscription_id, user_id)
        repo = EkycRepository(session)
        self._progress(repo, subscription.id).ensure_can_send_aadhaar_otp()
        aadhaar = AadhaarNumber(aadhaar_number)

        result = await self.kyc.send_aadhaar_otp(aadhaar.value)
        repo.add(EkycVerification(
            subscription_id=subscription.id,
            user_id=user_id,
            kind=EkycKind.AADHAAR,
            status=EkycStatus.OTP_SENT,
            reference_id=result["reference_id"],
            aadhaar_last4=aadhaar.last4,
            transaction_id=result.get("transaction_id"),
        ))
        log.info(f"Aadhaar OTP sent for subscription {subscription.id} ({aadhaar.masked})")
        return {"referenceId": result["reference_id"], "message": result["message"]}

    async def verify_aadhaar_otp(self, session: Session, user_id: str, subscription_id: str, reference_id: str, otp: str) -> Dict[str, Any]:
        subscription = self.subscriptions.get_owned(session, subscription_id, user_id)
        repo = EkycRepository(session)
        self._progress(repo, subscription.id).ensure_can_send_aadhaar_otp()
        code = Otp(otp)

        row = repo.find_by_reference(subscription.id, reference_id)
        if not row:
            raise DomainError("No OTP request found for this reference. Please request a new OTP.")

        try:
            result = await self.kyc.verify_aadhaar_otp(row.reference_id, code.value)
        except GatewayError as e:
            row.status = EkycStatus.FAILED
            row.failure_reason = str(e)
            session.commit()
            log.warning(f"Aadhaar OTP verification failed for subscription {subscription.id}: {e}")
            raise

        row.status = EkycStatus.VERIFIED
        row.name = result["name"]
        row.dob = result["dob"]
        row.gender = result["gender"]
        row.address = result["address"]
        row.transaction_id = result.get("transaction_id") or row.transaction_id
        row.verified_at = utcnow()
        session.flush()
        self._sync_completion(repo, subscription)
        return {"name": row.name, "dob": row.dob, "gender": row.gender, "address": row.address}

    # --- PAN ---

    async def verify_pan(self, session: Session, user_id: str, subscription_id: str, pan: str, name_as_pan: str, date_of_birth: str) -> Dict[str, Any]:
        subscription = self.subscriptions.get_owned(session, subscription_id, user_id)
        repo = EkycRepository(session)
        self._progress(repo, subscription.id).ensure_can_verify_pan()
        pan_number = PanNumber(pan)
        if not (name_as_pan or "").strip():
            raise DomainError("Name as per PAN is required")
        if not (date_of_birth or "").strip():
            raise DomainError("Date of birth is required")

        row = EkycVerification(
            subscription_id=subscription.id,
            user_id=user_id,
            kind=EkycKind.PAN,
            pan_number=pan_number.value,
            pan_name=name_as_pan.strip().upper(),
        )
        try:
            result = await self.kyc.verify_pan(pan_number.value, name_as_pan.strip(), date_of_birth.strip())
        except GatewayError as e:
            row.status = EkycStatus.FAILED
            row.failure_reason = str(e)
            repo.add(row)
            session.commit()
            log.warning(f"PAN verification failed for subscription {subscription.id}: {e}")
            raise

        is_valid = str(result.get("status", "")).lower() == "valid"
        row.status = EkycStatus.VERIFIED if is_valid else EkycStatus.FAILED
        row.pan_category = result.get("category")
        row.name_match = result.get("name_match")
        row.dob_match = result.get("dob_match")
        row.aadhaar_linked = result.get("aadhaar_linked")
        row.transaction_id = result.get("transaction_id")
        if is_valid:
            row.verified_at = utcnow()
        else:
            row.failure_reason = f"PAN status: {result.get('status')}"
        repo.add(row)
        self._sync_completion(repo, subscription)

        return {
            "pan": result.get("pan") or pan_number.value,
            "status": result.get("status"),
            "category": result.get("category"),
            "nameMatch": bool(result.get("name_match")),
            "dobMatch": bool(result.get("dob_match")),
            "aadhaarLinked": bool(result.get("aadhaar_linked")),
        }

    # --- Status ---

    def status(self, session: Session, user_id: str, subscription_id: str) -> Dict[str, Any]:
        subscription = self.subscriptions.get_owned(session, subscription_id, user_id)
        repo = EkycRepository(session)
        aadhaar = self._current(repo, subscription.id, EkycKind.AADHAAR)
        pan = self._current(repo, subscription.id, EkycKind.PAN)
        progress = self._progress(repo, subscription.id)
        return {
            "subscriptionId": subscription.id,
            "ekycDone": subscription.ekyc_done,
            "step": progress.step.value,
            "aadhaar": _aadhaar_view(aadhaar),
            "pan": _pan_view(pan),
        }


def _iso(dt) -> Optional[str]:
    return dt.isoformat() if dt else None


def _aadhaar_view(row: Optional[EkycVerification]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    return {"status": row.status.value, "name": row.name, "last4": row.aadhaar_last4, "verifiedAt": _iso(row.verified_at)}


def _pan_view(row: Optional[EkycVerification]) -> Optional[Dict[str, Any]]:
    if row is None:
        return None
    return {"status": row.status.value, "panNumber": row.pan_number, "panName": row.pan_name, "verifiedAt": _iso(row.verified_at)}
