# src/alphamarket/application/services/admin_service.py
"""Platform administration: account approval and moderation."""

import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from alphamarket.domain.errors import DomainError, NotFoundError
from alphamarket.infrastructure.db.models import User
from alphamarket.infrastructure.db.repository import PaymentRepository, SubscriptionRepository, UserRepository

log = logging.getLogger(__name__)

ADMIN_USER_FIELDS = (
    "is_approved", "is_registered", "company_name", "overview", "themes", "logo_url",
    "sebi_cert_url", "sebi_reg_number", "phone",
)


class AdminService:

    def list_users(self, session: Session) -> List[User]:
        return UserRepository(session).list_all()

    def update_user(self, session: Session, user_id: str, data: Dict[str, Any]) -> User:
        user = UserRepository(session).find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        for field in ADMIN_USER_FIELDS:
            if field in data:
                setattr(user, field, data[field])
        session.flush()
        if "is_approved" in data:
            log.info(f"Advisor {user.id} approval set to {user.is_approved}")
        return user

    def delete_user(self, session: Session, user_id: str, actor_id: str) -> None:
        if user_id == actor_id:
            raise DomainError("You cannot delete your own account")
        repo = UserRepository(session)
        user = repo.find_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        # Payments reference subscriptions, so they go first.
        PaymentRepository(session).delete_for_user(user.id)
        SubscriptionRepository(session).delete_for_user(user.id)
        repo.delete(user)
        log.info(f"User {user_id} deleted by admin {actor_id}")
