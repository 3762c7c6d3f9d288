# src/alphamarket/infrastructure/notify/push.py
"""
Web Push delivery (VAPID). pywebpush is blocking, so each send runs in a
worker thread; a batch fans out concurrently and reports which endpoints
the push service says are gone.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pywebpush import WebPushException, webpush

log = logging.getLogger(__name__)

GONE_STATUSES = (404, 410)


@dataclass
class PushBatchResult:
    sent: int = 0
    failed: int = 0
    expired_endpoints: List[str] = field(default_factory=list)


class WebPushSender:
    def __init__(self, public_key: Optional[str], private_key: Optional[str], subject: str):
        self.public_key = public_key or ""
        self.private_key = private_key or ""
        self.subject = subject
        if self.enabled:
            log.info("Web push notifications configured")
        else:
            log.warning("VAPID keys not configured - push notifications disabled")

    @property
    def enabled(self) -> bool:
        return bool(self.public_key and self.private_key)

    def _send_one(self, subscription_info: Dict[str, Any], data: str) -> None:
        webpush(
            subscription_info=subscription_info,
            data=data,
            vapid_private_key=self.private_key,
            vapid_claims={"sub": self.subject},
        )

    async def _deliver(self, subscription_info: Dict[str, Any], data: str) -> Optional[int]:
        """Returns None on success, else the push service's HTTP status (0 when unknown)."""
        try:
            await asyncio.to_thread(self._send_one, subscription_info, data)
            return None
        except WebPushException as e:
            status = getattr(e.response, "status_code", None) or 0
            if status not in GONE_STATUSES:
                log.warning(f"Web push delivery failed ({status}): {e}")
            return status

    async def send_many(self, subscriptions: List[Dict[str, Any]], payload: Dict[str, Any]) -> PushBatchResult:
        result = PushBatchResult()
        if not self.enabled or not subscriptions:
            return result

        data = json.dumps(payload)
        statuses = await asyncio.gather(*(self._deliver(sub, data) for sub in subscriptions))
        for sub, status in zip(subscriptions, statuses):
            if status is None:
                result.sent += 1
                continue
            result.failed += 1
            if status in GONE_STATUSES:
                result.expired_endpoints.append(sub["endpoint"])

        if result.failed:
            log.info(f"Push notifications: {result.sent} sent, {result.failed} failed/expired")
        return result
