"""SQLAlchemy declarative Base and shared model configuration."""

from typing import TypeVar

from sqlalchemy import Boolean, Column, DateTime, Integer, false, func
from sqlalchemy.orm import DeclarativeBase, Query, Session


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    pass


class TimestampMixin:
    """created_at / updated_at maintained by the database."""

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class AuditMixin:
    """Ids of the credentials that created / last changed the row."""

    created_by = Column(Integer, nullable=True)
    updated_by = Column(Integer, nullable=True)


class SoftDeleteMixin:
    """Rows are never hard-deleted; is_deleted hides them from every read path."""

    is_deleted = Column(Boolean, nullable=False, default=False, server_default=false())


M = TypeVar("M", bound=SoftDeleteMixin)


def active(db: Session, model: type[M]) -> Query:
    """Query over model restricted to rows that are not soft-deleted."""
    return db.query(model).filter(model.is_deleted.is_(False))
