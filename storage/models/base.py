"""
Base ORM Model and Mixins.

============================================================
PURPOSE
============================================================
Provides the declarative base and common mixins used by all
page store models.

============================================================
COMPONENTS
============================================================
- Base: SQLAlchemy declarative base for all models
- UTCDateTime: timestamp column that always reads back aware UTC
- TimestampMixin: created_at / updated_at columns

============================================================
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from core.clock import ensure_utc, now_utc


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp stored as UTC.

    SQLite keeps no offset and returns naive values; those are
    read back as UTC so a timestamp compares equal before and
    after a round trip on every backend.
    """

    impl = DateTime
    cache_ok = True

    def __init__(self) -> None:
        super().__init__(timezone=True)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return ensure_utc(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return ensure_utc(value)


class Base(DeclarativeBase):
    """
    Declarative base for all ORM models.

    UUID keys use the generic Uuid type so the same models run
    on PostgreSQL and SQLite.
    """

    type_annotation_map = {
        datetime: UTCDateTime(),
        uuid.UUID: Uuid(),
    }


class TimestampMixin:
    """
    Mixin providing standard timestamp columns.

    Values come from core.clock so tests can pin them. The
    repositories set updated_at explicitly on every save;
    the column default only covers direct inserts.

    Usage:
        class MyModel(Base, TimestampMixin):
            __tablename__ = "my_table"
            ...
    """

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=now_utc,
        comment="Record creation timestamp (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=now_utc,
        comment="Last update timestamp (UTC)"
    )
