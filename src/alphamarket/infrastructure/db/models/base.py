# --- START OF FILE: src/alphamarket/infrastructure/db/models/base.py ---
import uuid
from enum import Enum as PyEnum
from typing import Type

from sqlalchemy import Enum, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# Arrays and free-form payloads: JSONB on PostgreSQL, plain JSON elsewhere (tests run on SQLite).
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """The base class for all SQLAlchemy ORM models."""
    pass


def new_id() -> str:
    return str(uuid.uuid4())


def enum_column(enum_cls: Type[PyEnum]) -> Enum:
    """Store the enum's *value* (e.g. "Published"), which is what the API speaks."""
    return Enum(
        enum_cls,
        values_callable=lambda e: [m.value for m in e],
        native_enum=False,
        length=32,
        validate_strings=True,
    )
# --- END OF FILE ---
