# src/alphamarket/application/services/auth_service.py
"""
Accounts: registration, credential checks and password reset.

Session tokens are minted by the API layer; this service only decides who
the caller is.
"""

import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from alphamarket.domain.clock import utcnow, as_utc
from alphamarket.domain.entities import UserRole
from alphamarket.domain.errors import DomainError, AuthenticationError
from alphamarket.infrastructure.db.models import User
from alphamarket.infrastructure.db.repository import UserRepository
from alphamarket.infrastructure.notify.email import (
    SendGridMailer, registration_email, password_reset_email,
)
from alphamarket.interfaces.api.security.auth import hash_password, verify_password

log = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthService:
    def __init__(
        self,
        mailer: SendGridMailer,
        admin_email: Optional[str] = None,
        public_base_url: str = "http://localhost:5000",
        reset_ttl_minutes: int = 60,
    ):
        self.mailer = mailer
        self.admin_email = admin_email
        self.public_base_url = public_base_url.rstrip("/")
        self.reset_ttl_minutes = reset_ttl_minutes

    def register(
        self,
        session: Session,
        username: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
        role: Optional[str] = None,
        company_name: Optional[str] = None,
        sebi_reg_number: Optional[str] = None,
        sebi_cert_url: Optional[str] = None,
    ) -> User:
        repo = UserRepository(session)
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not username or not email:
            raise DomainError("Username and email are required")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise DomainError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if repo.find_by_username(username):
            raise DomainError("Username already taken")
        if repo.find_by_email(email):
            raise DomainError("Email already registered")

        # Admin accounts are provisioned out of band, never self-assigned.
        user_role = UserRole.ADVISOR if role == UserRole.ADVISOR.value else UserRole.INVESTOR
        is_advisor = user_role == UserRole.ADVISOR

        user = repo.add(User(
            username=username,
            email=email,
            password=hash_password(password),
            phone=phone or None,
            role=user_role,
            company_name=company_name or None,
            sebi_reg_number=(sebi_reg_number or None) if is_advisor else None,
            sebi_cert_url=(sebi_cert_url or None) if is_advisor else None,
            is_registered=is_advisor,
            is_approved=False,
            active_since=utcnow(),
        ))
        log.info(f"Registered {user_role.value} '{username}' (id={user.id})")
        return user

    def authenticate(self, session: Session, username: str, password: str) -> User:
        user = UserRepository(session).find_by_username((username or "").strip())
        if not user or not verify_password(password or "", user.password):
            raise AuthenticationError("Invalid credentials")
        return user

    def get_user(self, session: Session, user_id: str) -> User:
        user = UserRepository(session).find_by_id(user_id)
        if not user:
            raise AuthenticationError("Not authenticated")
        return user

    # --- Notifications ---

    async def send_registration_notification(self, user_snapshot: Dict[str, Any]) -> None:
        """Best effort: a mail failure is logged and swallowed."""
        if not self.admin_email:
            log.debug("ADMIN_NOTIFICATION_EMAIL not set; skipping registration email")
            return
        subject, body = registration_email(user_snapshot)
        result = await self.mailer.send(self.admin_email, subject, body)
        if result.get("status") == "sent":
            log.info(f"Registration notification sent to {self.admin_email}")
        else:
            log.error(f"Failed to send registration notification email: {result.get('error')}")

    # --- Password reset ---

    def request_password_reset(self, session: Session, email: str) -> Optional[Dict[str, str]]:
        """
        Stores a single-use reset token. Returns what the reset email needs,
        or None for an unknown address; the caller answers the same either
        way so registered emails cannot be enumerated.
        """
        repo = UserRepository(session)
        user = repo.find_by_email(email or "")
        if not user:
            log.info("Password reset requested for unknown email")
            return None

        token = secrets.token_urlsafe(32)
        repo.add_reset_token(user, token, utcnow() + timedelta(minutes=self.reset_ttl_minutes))
        return {"user_id": user.id, "email": user.email, "username": user.username, "token": token}

    async def send_password_reset(self, reset: Dict[str, str]) -> None:
        """Best effort, sent after the token is committed."""
        reset_url = f"{self.public_base_url}/reset-password?token={reset['token']}"
        subject, body = password_reset_email(reset["username"], reset_url, self.reset_ttl_minutes)
        result = await self.mailer.send(reset["email"], subject, body)
        if result.get("status") != "sent":
            log.error(f"Password reset email for user {reset['user_id']} not sent: {result.get('error')}")

    def reset_password(self, session: Session, token: str, new_password: str) -> None:
        if len(new_password or "") < MIN_PASSWORD_LENGTH:
            raise DomainError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        repo = UserRepository(session)
        row = repo.find_reset_token(token or "")
        if not row or row.used or as_utc(row.expires_at) < utcnow():
            raise DomainError("Invalid or expired reset link")

        user = repo.find_by_id(row.user_id)
        if not user:
            raise DomainError("Invalid or expired reset link")
        user.password = hash_password(new_password)
        row.used = True
        session.flush()
        log.info(f"Password reset completed for user {user.id}")
