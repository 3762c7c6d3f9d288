# File: src/alphamarket/interfaces/api/routers/content.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from alphamarket.infrastructure.db.uow import session_scope
from alphamarket.interfaces.api.deps import get_content_service
from alphamarket.interfaces.api.schemas import ContentDetailOut, ContentOut

router = APIRouter(prefix="/api/content", tags=["Content"])


@router.get("", response_model=List[ContentOut])
def list_content(content_type: Optional[str] = Query(None, alias="type"), svc=Depends(get_content_service)):
    with session_scope() as session:
        return [ContentOut.model_validate(c) for c in svc.list_public(session, content_type)]


@router.get("/public/{content_type}", response_model=List[ContentOut])
def list_content_by_type(content_type: str, svc=Depends(get_content_service)):
    return list_content(content_type, svc)


@router.get("/{content_id}", response_model=ContentDetailOut)
def get_content(content_id: str, svc=Depends(get_content_service)):
    with session_scope() as session:
        return ContentDetailOut.model_validate(svc.get(session, content_id))
