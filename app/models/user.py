"""ORM model for HR user profiles (the person behind a credential)."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, false

from app.models.base import AuditMixin, Base, SoftDeleteMixin, TimestampMixin


class UserProfile(Base, TimestampMixin, AuditMixin, SoftDeleteMixin):
    """
    Profile data for a person. Login state lives on Credential.

    status: 'pending' until the initial password is set, then 'active'.
    """

    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(320), nullable=True, unique=True, index=True)
    phone = Column(String(64), nullable=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=True, index=True)
    status = Column(String(16), nullable=False, default="requested", server_default="requested")
    is_profile_completed = Column(Boolean, nullable=False, default=False, server_default=false())

    @property
    def display_name(self) -> str | None:
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else None
