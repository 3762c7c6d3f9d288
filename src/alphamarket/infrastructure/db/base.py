# src/alphamarket/infrastructure/db/base.py
"""
Database engine setup and session factory.

Decimal values inside JSON columns are serialised as strings so that JSONB
payloads (risk answers, notification data) never fail on `Decimal`.
"""

import json
import logging
from decimal import Decimal

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from alphamarket.config import settings
from .models.base import Base  # noqa: F401  (re-exported for callers that expect it here)

log = logging.getLogger(__name__)


# --- Custom JSON Serializer ---
def _custom_json_serializer(obj):
    if isinstance(obj, Decimal):
        return str(obj)
    raise TypeError(f"Object of type {obj.__class__.__name__} is not JSON serializable")


def _engine_kwargs(url: str) -> dict:
    kwargs = {
        "json_serializer": lambda obj: json.dumps(obj, default=_custom_json_serializer),
    }
    if url.startswith("sqlite"):
        # Request handlers run in a threadpool; one SQLite connection may hop threads.
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_pre_ping"] = True
        kwargs["pool_recycle"] = 3600
    return kwargs


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))


if settings.DATABASE_URL.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _sqlite_fk_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
