"""ORM model for named permissions that can be attached to a role's menu grant."""

from sqlalchemy import Column, Integer, String, Text

from app.models.base import AuditMixin, Base, SoftDeleteMixin, TimestampMixin


class Permission(Base, TimestampMixin, AuditMixin, SoftDeleteMixin):
    """Catalogue entry, e.g. 'approve-leave'."""

    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
