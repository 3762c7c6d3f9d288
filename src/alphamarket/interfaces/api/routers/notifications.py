# File: src/alphamarket/interfaces/api/routers/notifications.py
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.interfaces.api.deps import CurrentUser, get_notification_service, get_optional_user
from alphamarket.interfaces.api.schemas import NotificationOut, PushSubscribeIn, PushUnsubscribeIn

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("/vapid-key")
def vapid_key(svc=Depends(get_notification_service)) -> Dict[str, Any]:
    return svc.vapid_key()


@router.post("/subscribe")
def subscribe(
    payload: PushSubscribeIn,
    user: CurrentUser = Depends(get_optional_user),
    svc=Depends(get_notification_service),
):
    # Visitors may subscribe too; the row is linked to the user once they sign in.
    with session_scope() as session:
        svc.subscribe(session, payload.endpoint, payload.keys.p256dh, payload.keys.auth, user_id=user.id)
    return {"ok": True}


@router.post("/unsubscribe")
def unsubscribe(payload: PushUnsubscribeIn, svc=Depends(get_notification_service)):
    with session_scope() as session:
        removed = svc.unsubscribe(session, payload.endpoint)
    return {"ok": True, "removed": removed}


@router.get("/recent", response_model=List[NotificationOut])
def recent(user: CurrentUser = Depends(get_optional_user), svc=Depends(get_notification_service)):
    with session_scope() as session:
        return [NotificationOut.model_validate(n) for n in svc.recent(session, user.id)]
