"""ORM model for role -> menu grants, exposed as a tagged Grant variant."""

from dataclasses import dataclass

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String, text

from app.models.base import AuditMixin, Base, SoftDeleteMixin, TimestampMixin

GRANT_VISIBLE = "visible"
GRANT_PERMISSION = "permission"


@dataclass(frozen=True)
class Visible:
    """The menu is visible to the role (no specific permission attached)."""


@dataclass(frozen=True)
class SpecificPermission:
    """The menu is granted through a named Permission."""

    permission_id: int


Grant = Visible | SpecificPermission


class RoleMenuPermission(Base, TimestampMixin, AuditMixin, SoftDeleteMixin):
    """
    One grant of a menu to a role. (role_id, menu_id) is unique among
    non-deleted rows; removed grants are soft-deleted and may be revived.
    """

    __tablename__ = "role_menu_permissions"
    __table_args__ = (
        CheckConstraint(
            "(grant_kind = 'visible' AND permission_id IS NULL)"
            " OR (grant_kind = 'permission' AND permission_id IS NOT NULL)",
            name="ck_role_menu_permissions_grant_kind",
        ),
        Index(
            "uq_role_menu_permissions_active",
            "role_id",
            "menu_id",
            unique=True,
            postgresql_where=text("NOT is_deleted"),
            sqlite_where=text("is_deleted = 0"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False, index=True)
    menu_id = Column(Integer, ForeignKey("menus.id"), nullable=False, index=True)
    grant_kind = Column(String(16), nullable=False, default=GRANT_VISIBLE, server_default=GRANT_VISIBLE)
    permission_id = Column(Integer, ForeignKey("permissions.id"), nullable=True)

    @property
    def grant(self) -> Grant:
        if self.grant_kind == GRANT_PERMISSION and self.permission_id is not None:
            return SpecificPermission(self.permission_id)
        return Visible()

    @grant.setter
    def grant(self, value: Grant) -> None:
        if isinstance(value, SpecificPermission):
            self.grant_kind = GRANT_PERMISSION
            self.permission_id = value.permission_id
        else:
            self.grant_kind = GRANT_VISIBLE
            self.permission_id = None
