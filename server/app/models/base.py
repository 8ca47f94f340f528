"""Declarative base and shared column mixins."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Current time as naive UTC, the storage convention for every timestamp."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimestampMixin:
    """Created/updated timestamps maintained by the care-coordination app."""

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class SoftDeleteMixin:
    """Rows are hidden, never removed; every query filters ``is_deleted``."""

    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
