"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.credential import Credential
from app.models.menu import Menu
from app.models.permission import Permission
from app.models.role import Role
from app.models.role_menu_permission import RoleMenuPermission, SpecificPermission, Visible
from app.models.security_setting import SecuritySetting
from app.models.user import UserProfile

__all__ = [
    "Base",
    "Credential",
    "Menu",
    "Permission",
    "Role",
    "RoleMenuPermission",
    "SecuritySetting",
    "SpecificPermission",
    "UserProfile",
    "Visible",
]
