# src/alphamarket/application/services/content_service.py
"""Articles, monthly complaint disclosures and the advisor's question inbox."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from alphamarket.domain.clock import utcnow
from alphamarket.domain.errors import DomainError, NotFoundError, PermissionDeniedError
from alphamarket.infrastructure.db.models import AdvisorQuestion, Content, Score
from alphamarket.infrastructure.db.repository import ContentRepository

log = logging.getLogger(__name__)

SCORE_COUNTS = ("beginning_of_month", "received_during", "resolved_during", "pending_at_end")


class ContentService:

    # --- Content ---

    def list_public(self, session: Session, content_type: Optional[str] = None) -> List[Content]:
        return ContentRepository(session).list_by_type(content_type or "MarketUpdate")

    def get(self, session: Session, content_id: str) -> Content:
        row = ContentRepository(session).get(content_id)
        if not row:
            raise NotFoundError("Content not found")
        return row

    def list_own(self, session: Session, advisor_id: str) -> List[Content]:
        return ContentRepository(session).list_by_advisor(advisor_id)

    def create(self, session: Session, advisor_id: str, data: Dict[str, Any]) -> Content:
        title = (data.get("title") or "").strip()
        if not title:
            raise DomainError("Title is required")
        return ContentRepository(session).add(Content(
            advisor_id=advisor_id,
            title=title,
            type=data.get("type") or "MarketUpdate",
            body=data.get("body"),
            attachments=data.get("attachments") or [],
        ))

    def delete(self, session: Session, content_id: str, actor_id: str, is_admin: bool = False) -> None:
        row = self.get(session, content_id)
        if not is_admin and row.advisor_id != actor_id:
            raise PermissionDeniedError("You do not own this content")
        ContentRepository(session).delete(row)

    # --- Scores ---

    def list_scores(self, session: Session, advisor_id: str) -> List[Score]:
        return ContentRepository(session).list_scores(advisor_id)

    def create_score(self, session: Session, advisor_id: str, data: Dict[str, Any]) -> Score:
        score = Score(advisor_id=advisor_id, month=data.get("month"), pendency_reasons=data.get("pendency_reasons"))
        for field in SCORE_COUNTS:
            try:
                value = int(data.get(field) or 0)
            except (TypeError, ValueError):
                raise DomainError(f"{field} must be a whole number")
            if value < 0:
                raise DomainError(f"{field} cannot be negative")
            setattr(score, field, value)
        return ContentRepository(session).add(score)

    # --- Questions ---

    def list_questions(self, session: Session, advisor_id: str) -> List[AdvisorQuestion]:
        return ContentRepository(session).list_questions(advisor_id)

    def unread_count(self, session: Session, advisor_id: str) -> int:
        return ContentRepository(session).count_unread_questions(advisor_id)

    def update_question(self, session: Session, question_id: str, advisor_id: str, data: Dict[str, Any]) -> AdvisorQuestion:
        row = ContentRepository(session).get_question(question_id)
        if not row or row.advisor_id != advisor_id:
            raise NotFoundError("Question not found")
        answer = (data.get("answer") or "").strip()
        if answer:
            row.answer = answer
            row.answered_at = utcnow()
            row.is_read = True
        if data.get("is_read") is not None:
            row.is_read = bool(data["is_read"])
        session.flush()
        return row
