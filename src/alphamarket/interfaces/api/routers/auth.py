#--- START OF FILE: src/alphamarket/interfaces/api/routers/auth.py ---
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status

from alphamarket.config import settings
from alphamarket.infrastructure.db.models import User
from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.interfaces.api.deps import CurrentUser, get_auth_service, require_user
from alphamarket.interfaces.api.schemas import (
    AuthOut, ForgotPasswordIn, LoginIn, RegisterIn, ResetPasswordIn, UserOut,
)
from alphamarket.interfaces.api.security import auth

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _issue_session(response: Response, user: User) -> str:
    token = auth.create_access_token(subject=user.id, roles=[user.role.value])
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=settings.JWT_EXPIRE_MIN * 60,
        httponly=True,
        samesite="lax",
        secure=settings.ENV != "dev",
    )
    return token


@router.post("/register", response_model=AuthOut, status_code=status.HTTP_201_CREATED)
def register_user(payload: RegisterIn, response: Response, background: BackgroundTasks, svc=Depends(get_auth_service)):
    with session_scope() as session:
        user = svc.register(session, **payload.model_dump())
        out = UserOut.model_validate(user)
        token = _issue_session(response, user)
    background.add_task(svc.send_registration_notification, {
        "username": out.username,
        "email": out.email,
        "phone": out.phone,
        "role": out.role,
        "company_name": out.company_name,
        "sebi_reg_number": out.sebi_reg_number,
        "sebi_cert_url": out.sebi_cert_url,
    })
    return AuthOut(user=out, token=token)


@router.post("/login", response_model=AuthOut)
def login(payload: LoginIn, response: Response, svc=Depends(get_auth_service)):
    with session_scope() as session:
        user = svc.authenticate(session, payload.username, payload.password)
        out = UserOut.model_validate(user)
        token = _issue_session(response, user)
    log.info(f"User {out.id} logged in")
    return AuthOut(user=out, token=token)


@router.get("/me", response_model=UserOut)
def me(user: CurrentUser = Depends(require_user), svc=Depends(get_auth_service)):
    with session_scope() as session:
        return UserOut.model_validate(svc.get_user(session, user.sub))


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"ok": True}


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordIn, background: BackgroundTasks, svc=Depends(get_auth_service)):
    with session_scope() as session:
        reset = svc.request_password_reset(session, payload.email.strip().lower())
    if reset:
        background.add_task(svc.send_password_reset, reset)
    return {"ok": True}


@router.post("/reset-password")
def reset_password(payload: ResetPasswordIn, svc=Depends(get_auth_service)):
    with session_scope() as session:
        svc.reset_password(session, payload.token, payload.password)
    return {"ok": True}
#--- END OF FILE ---
