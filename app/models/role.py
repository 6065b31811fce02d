"""ORM model for roles."""

from sqlalchemy import Boolean, Column, Integer, String, Text, false

from app.models.base import AuditMixin, Base, SoftDeleteMixin, TimestampMixin


class Role(Base, TimestampMixin, AuditMixin, SoftDeleteMixin):
    """
    A named set of menu grants assigned to credentials.

    session_binding_required: when True, members hold a single live session; the
    session id embedded in their tokens must equal the one persisted on their
    credential. Other roles get a session id in their tokens but it is never
    checked.
    """

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    default_role = Column(Boolean, nullable=False, default=False, server_default=false())
    session_binding_required = Column(Boolean, nullable=False, default=False, server_default=false())
