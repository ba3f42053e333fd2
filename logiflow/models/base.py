"""Base model classes and mixins for LogiFlow documents."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """Stores datetimes as naive UTC and hands them back timezone-aware.

    SQLite drops tzinfo on the way out, so naive values read back from the
    database are re-tagged as UTC. Naive values written in are assumed UTC.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """Adds created_at / updated_at columns (row metadata, not document fields)."""

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, server_default=func.now(), onupdate=utcnow
    )


class DocumentMixin:
    """Document-style access for tables keyed by a natural identifier."""

    _metadata_fields = frozenset({"created_at", "updated_at"})

    @classmethod
    def document_fields(cls) -> set[str]:
        return {c.key for c in cls.__table__.columns} - cls._metadata_fields

    def to_document(self) -> dict[str, Any]:
        """Column values as a plain dict, without row metadata."""
        return {name: getattr(self, name) for name in self.document_fields()}
