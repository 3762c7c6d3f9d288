# src/alphamarket/interfaces/api/deps.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, List, Optional, Set

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError

from alphamarket.config import settings
from alphamarket.interfaces.api.security.auth import decode_token

# --- Security & Auth Dependencies ---

bearer_scheme = HTTPBearer(auto_error=False)

ADVISOR = "ADVISOR"
INVESTOR = "INVESTOR"
ADMIN = "ADMIN"


@dataclass
class CurrentUser:
    """The caller as described by their session token."""
    sub: str
    roles: List[str]
    is_authenticated: bool = False

    @property
    def is_admin(self) -> bool:
        return ADMIN in self.roles

    @property
    def id(self) -> Optional[str]:
        return self.sub if self.is_authenticated else None


GUEST = CurrentUser(sub="guest", roles=[], is_authenticated=False)


def _token_from(request: Request, creds: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if creds is not None:
        return creds.credentials
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def _user_from_token(token: str) -> CurrentUser:
    payload = decode_token(token)
    return CurrentUser(
        sub=payload.get("sub", ""),
        roles=[role.upper() for role in payload.get("roles", [])],
        is_authenticated=True,
    )


def get_current_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    """Bearer header first, then the session cookie. No token means guest."""
    token = _token_from(request, creds)
    if not token:
        return GUEST
    try:
        return _user_from_token(token)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token"
        )


def get_optional_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    """Like `get_current_user` but a bad token degrades to guest, for public pages."""
    token = _token_from(request, creds)
    if not token:
        return GUEST
    try:
        return _user_from_token(token)
    except JWTError:
        return GUEST


def require_user(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_authenticated:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return user


def require_roles(required: Set[str]):
    """
    Dependency that requires the current user to have at least one of the specified roles.
    """
    def _dependency(user: CurrentUser = Depends(require_user)):
        if not set(user.roles).intersection(required):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user
    return _dependency


require_advisor = require_roles({ADVISOR, ADMIN})
require_admin = require_roles({ADMIN})

# --- Service Dependencies ---

def _service(request: Request, name: str) -> Any:
    services = request.app.state.services or {}
    service = services.get(name)
    if not service:
        label = name.replace("_", " ").capitalize()
        raise HTTPException(status_code=503, detail=f"{label} is currently unavailable.")
    return service


def get_auth_service(request: Request):
    return _service(request, "auth_service")

def get_strategy_service(request: Request):
    return _service(request, "strategy_service")

def get_subscription_service(request: Request):
    return _service(request, "subscription_service")

def get_notification_service(request: Request):
    return _service(request, "notification_service")

def get_ekyc_service(request: Request):
    return _service(request, "ekyc_service")

def get_risk_profile_service(request: Request):
    return _service(request, "risk_profile_service")

def get_payment_service(request: Request):
    return _service(request, "payment_service")

def get_performance_service(request: Request):
    return _service(request, "performance_service")

def get_investor_service(request: Request):
    return _service(request, "investor_service")

def get_advisor_service(request: Request):
    return _service(request, "advisor_service")

def get_content_service(request: Request):
    return _service(request, "content_service")

def get_report_service(request: Request):
    return _service(request, "report_service")

def get_basket_service(request: Request):
    return _service(request, "basket_service")

def get_market_data_service(request: Request):
    return _service(request, "market_data_service")

def get_admin_service(request: Request):
    return _service(request, "admin_service")
