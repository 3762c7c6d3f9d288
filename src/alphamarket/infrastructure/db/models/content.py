# src/alphamarket/infrastructure/db/models/content.py
"""Advisor-authored material: articles, complaint disclosures, investor questions."""

from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, func
from sqlalchemy.orm import relationship

from alphamarket.domain.clock import utcnow
from .base import Base, JSONType, new_id


class Content(Base):
    __tablename__ = 'content'

    id = Column(String(36), primary_key=True, default=new_id)
    advisor_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    type = Column(String(32), nullable=False, default="MarketUpdate", server_default="MarketUpdate", index=True)
    body = Column(Text, nullable=True)
    attachments = Column(JSONType, nullable=True, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    advisor = relationship("User", back_populates="contents")


class Score(Base):
    """Monthly SEBI complaint-status disclosure."""
    __tablename__ = 'scores'

    id = Column(String(36), primary_key=True, default=new_id)
    advisor_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    beginning_of_month = Column(Integer, default=0, server_default='0', nullable=False)
    received_during = Column(Integer, default=0, server_default='0', nullable=False)
    resolved_during = Column(Integer, default=0, server_default='0', nullable=False)
    pending_at_end = Column(Integer, default=0, server_default='0', nullable=False)
    pendency_reasons = Column(Text, nullable=True)
    month = Column(String(16), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    advisor = relationship("User", back_populates="scores")


class AdvisorQuestion(Base):
    __tablename__ = 'advisor_questions'

    id = Column(String(36), primary_key=True, default=new_id)
    advisor_id = Column(String(36), ForeignKey('users.id', ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey('users.id', ondelete="SET NULL"), nullable=True)
    name = Column(String(128), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=True)
    is_read = Column(Boolean, default=False, server_default='false', nullable=False)
    answered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
