# File: src/alphamarket/infrastructure/db/uow.py
"""
Unit of Work for routers, services and scheduler jobs.

`session_scope()` opens one session, commits when the block exits cleanly
and rolls back when it raises. Routers open one scope per request; the
payment poller and the scheduler open one per attempt or job, so a failure
in one never discards work already committed by another.
"""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from .base import engine, SessionLocal
from .models import Base

log = logging.getLogger(__name__)


def create_tables() -> None:
    """Dev/demo bootstrap. Deployed databases are managed by Alembic."""
    log.info(f"Ensuring {len(Base.metadata.tables)} tables exist on {engine.url.get_backend_name()}...")
    try:
        Base.metadata.create_all(engine)
    except Exception as e:
        log.critical(f"Schema bootstrap failed: {e}", exc_info=True)
        raise


@contextmanager
def session_scope() -> Iterator[Session]:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception as e:
        # Rejected requests (validation, 404) are routine; keep them at debug.
        log.debug(f"Rolling back session {id(session)} after {type(e).__name__}: {e}")
        session.rollback()
        raise
    finally:
        session.close()
