# src/alphamarket/infrastructure/db/models/auth.py
"""
SQLAlchemy ORM models for accounts. Advisors, investors and admins share the
`users` table; advisor-only profile columns stay NULL for everyone else.
"""

from sqlalchemy import Column, String, Text, DateTime, Boolean, ForeignKey, func
from sqlalchemy.orm import relationship

from alphamarket.domain.clock import utcnow
from alphamarket.domain.entities import UserRole
from .base import Base, JSONType, new_id, enum_column


class User(Base):
    __tablename__ = 'users'

    id = Column(String(36), primary_key=True, default=new_id)
    username = Column(String(64), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(32), nullable=True)
    role = Column(enum_column(UserRole), nullable=False, default=UserRole.INVESTOR, server_default=UserRole.INVESTOR.value)

    # Advisor profile
    company_name = Column(String(255), nullable=True)
    overview = Column(Text, nullable=True)
    themes = Column(JSONType, nullable=True, default=list)
    logo_url = Column(String(512), nullable=True)
    sebi_cert_url = Column(String(512), nullable=True)
    sebi_reg_number = Column(String(32), nullable=True)
    is_registered = Column(Boolean, default=False, server_default='false', nullable=False)
    is_approved = Column(Boolean, default=False, server_default='false', nullable=False)
    agreement_consent = Column(Boolean, default=False, server_default='false', nullable=False)
    agreement_consent_date = Column(DateTime(timezone=True), nullable=True)
    active_since = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    # --- Relationships (advisor side) ---
    strategies = relationship("Strategy", back_populates="advisor", cascade="all, delete-orphan", order_by="Strategy.created_at.desc()")
    plans = relationship("Plan", back_populates="advisor", cascade="all, delete-orphan")
    contents = relationship("Content", back_populates="advisor", cascade="all, delete-orphan", order_by="Content.created_at.desc()")
    scores = relationship("Score", back_populates="advisor", cascade="all, delete-orphan", order_by="Score.created_at.desc()")
    reset_tokens = relationship("PasswordResetToken", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_advisor(self) -> bool:
        return self.role == UserRole.ADVISOR

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def display_name(self) -> str:
        return self.company_name or self.username

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role.value if self.role else None}')>"


class PasswordResetToken(Base):
    __tablename__ = 'password_reset_tokens'

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(128), unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used = Column(Boolean, default=False, server_default='false', nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="reset_tokens")
