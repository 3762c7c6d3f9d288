# src/alphamarket/application/services/notification_service.py
"""
In-app notifications and Web Push fan-out.

Every broadcast is persisted first (it shows up in the notification bell)
and then pushed to the matching browser subscriptions. Fan-out runs in its
own unit of work, usually as a background task after the triggering request
has returned; it never raises.
"""

import logging
from typing import Any, Callable, ContextManager, Dict, List, Optional

from sqlalchemy.orm import Session

from alphamarket.domain.entities import NotificationScope
from alphamarket.domain.errors import DomainError
from alphamarket.infrastructure.db.models import Notification, PushSubscription
from alphamarket.infrastructure.db.repository import (
    NotificationRepository, SubscriptionRepository,
)
from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.infrastructure.notify.push import WebPushSender

log = logging.getLogger(__name__)

DEFAULT_ICON = "/favicon.png"
DEFAULT_TAG = "alphamarket"
RECENT_LIMIT = 20


def build_payload(
    title: str,
    body: str,
    url: str = "/",
    tag: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """The push message contract understood by the service worker."""
    return {
        "title": title,
        "body": body,
        "icon": DEFAULT_ICON,
        "badge": DEFAULT_ICON,
        "tag": tag or DEFAULT_TAG,
        "url": url,
        "data": {"url": url, **(data or {})},
    }


class NotificationService:
    def __init__(
        self,
        sender: WebPushSender,
        session_factory: Callable[[], ContextManager[Session]] = session_scope,
    ):
        self.sender = sender
        self.session_factory = session_factory

    def vapid_key(self) -> Dict[str, Any]:
        return {"publicKey": self.sender.public_key, "enabled": self.sender.enabled}

    # --- Browser subscriptions ---

    def subscribe(self, session: Session, endpoint: str, p256dh: str, auth: str, user_id: Optional[str] = None) -> PushSubscription:
        if not endpoint or not p256dh or not auth:
            raise DomainError("Invalid push subscription")
        repo = NotificationRepository(session)
        existing = repo.find_push_subscription(endpoint)
        if existing:
            existing.p256dh = p256dh
            existing.auth = auth
            if user_id:
                existing.user_id = user_id
            session.flush()
            return existing
        return repo.add_push_subscription(PushSubscription(endpoint=endpoint, p256dh=p256dh, auth=auth, user_id=user_id))

    def unsubscribe(self, session: Session, endpoint: str) -> bool:
        return NotificationRepository(session).delete_push_subscription(endpoint) > 0

    def recent(self, session: Session, user_id: Optional[str]) -> List[Notification]:
        strategy_ids: List[str] = []
        if user_id:
            subs = SubscriptionRepository(session).list_active_by_user(user_id)
            strategy_ids = [s.strategy_id for s in subs if s.strategy_id]
        return NotificationRepository(session).recent_for(strategy_ids, signed_in=bool(user_id), limit=RECENT_LIMIT)

    # --- Broadcasts ---

    async def _push(self, subs: List[PushSubscription], payload: Dict[str, Any]) -> int:
        if not subs:
            return 0
        result = await self.sender.send_many([s.to_subscription_info() for s in subs], payload)
        if result.expired_endpoints:
            with self.session_factory() as session:
                repo = NotificationRepository(session)
                for endpoint in result.expired_endpoints:
                    repo.delete_push_subscription(endpoint)
            log.info(f"Removed {len(result.expired_endpoints)} expired push subscriptions")
        return result.sent

    def _record(self, session: Session, notif_type: str, scope: NotificationScope, payload: Dict[str, Any], strategy_id: Optional[str] = None) -> None:
        NotificationRepository(session).add(Notification(
            type=notif_type,
            title=payload["title"],
            body=payload.get("body"),
            data=payload.get("data") or {},
            target_scope=scope,
            strategy_id=strategy_id,
        ))

    async def notify_strategy_subscribers(self, strategy_id: str, notif_type: str, payload: Dict[str, Any]) -> int:
        try:
            with self.session_factory() as session:
                self._record(session, notif_type, NotificationScope.STRATEGY_SUBSCRIBERS, payload, strategy_id)
                user_ids = SubscriptionRepository(session).active_subscriber_ids(strategy_id)
                subs = NotificationRepository(session).push_subscriptions_for_users(user_ids)
            return await self._push(subs, payload)
        except Exception as e:
            log.error(f"Error sending strategy notifications for {strategy_id}: {e}", exc_info=True)
            return 0

    async def notify_all_users(self, payload: Dict[str, Any]) -> int:
        try:
            with self.session_factory() as session:
                self._record(session, "general_alert", NotificationScope.ALL_USERS, payload)
                subs = NotificationRepository(session).all_push_subscriptions(signed_in_only=True)
            return await self._push(subs, payload)
        except Exception as e:
            log.error(f"Error sending broadcast notifications: {e}", exc_info=True)
            return 0

    async def notify_all_visitors(self, payload: Dict[str, Any]) -> int:
        try:
            with self.session_factory() as session:
                self._record(session, "general_alert", NotificationScope.ALL_VISITORS, payload)
                subs = NotificationRepository(session).all_push_subscriptions()
            return await self._push(subs, payload)
        except Exception as e:
            log.error(f"Error sending visitor notifications: {e}", exc_info=True)
            return 0

    async def broadcast(self, scope: str, title: str, body: str, url: Optional[str] = None) -> int:
        """Admin broadcast to every signed-in user or to every visitor."""
        payload = build_payload(title, body, url=url or "/")
        if scope == NotificationScope.ALL_VISITORS.value:
            return await self.notify_all_visitors(payload)
        if scope == NotificationScope.ALL_USERS.value:
            return await self.notify_all_users(payload)
        raise DomainError("scope must be 'all_users' or 'all_visitors'")
