# src/alphamarket/infrastructure/db/models/notification.py
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, func

from alphamarket.domain.clock import utcnow
from alphamarket.domain.entities import NotificationScope
from .base import Base, JSONType, new_id, enum_column


class Notification(Base):
    __tablename__ = 'notifications'

    id = Column(String(36), primary_key=True, default=new_id)
    type = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    data = Column(JSONType, nullable=True, default=dict)
    target_scope = Column(enum_column(NotificationScope), nullable=False)
    strategy_id = Column(String(36), ForeignKey('strategies.id', ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class PushSubscription(Base):
    """A browser's Web Push endpoint. `user_id` is NULL for anonymous visitors."""
    __tablename__ = 'push_subscriptions'

    id = Column(String(36), primary_key=True, default=new_id)
    endpoint = Column(Text, unique=True, nullable=False)
    p256dh = Column(String(255), nullable=False)
    auth = Column(String(255), nullable=False)
    user_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    def to_subscription_info(self) -> dict:
        return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}
