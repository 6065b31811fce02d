"""Role administration: create, list, rename, enable/disable and grant replacement."""

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.base import active
from app.models.menu import MENU_ACTIVE, Menu
from app.models.role import Role
from app.models.role_menu_permission import Grant, RoleMenuPermission, Visible
from app.models.user import UserProfile
from app.schemas.common import Pagination, paginate
from app.schemas.roles import RoleCreate, RoleDetail, RoleOut, RoleUpdate
from app.services.grants import get_active_role, list_role_grants, set_role_grants
from app.services.sessions import invalidate_role_sessions

logger = logging.getLogger(__name__)


def _is_protected(role: Role) -> bool:
    return role.name in settings.PROTECTED_ROLE_NAMES


def _ensure_name_free(db: Session, name: str, exclude_id: int | None = None) -> None:
    query = db.query(Role).filter(func.lower(Role.name) == name.strip().lower())
    if exclude_id is not None:
        query = query.filter(Role.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Role name already exists")


def role_detail(db: Session, role: Role) -> RoleDetail:
    return RoleDetail(
        **RoleOut.model_validate(role).model_dump(),
        permissions=list_role_grants(db, role.id),
    )


def create_role(db: Session, data: RoleCreate, actor_id: int | None) -> RoleDetail:
    """
    Create a role, optionally seeded with grants copied from other roles or
    with every active menu granted as visible.
    """
    name = data.name.strip()
    _ensure_name_free(db, name)
    role = Role(
        name=name,
        description=data.description,
        default_role=data.default_role,
        session_binding_required=data.session_binding_required,
        created_by=actor_id,
        updated_by=actor_id,
    )
    try:
        db.add(role)
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Role name already exists") from exc

    desired: dict[int, Grant] = {}
    if data.import_permissions_from_role_ids:
        rows = (
            active(db, RoleMenuPermission)
            .join(Menu, Menu.id == RoleMenuPermission.menu_id)
            .filter(
                RoleMenuPermission.role_id.in_(data.import_permissions_from_role_ids),
                Menu.is_deleted.is_(False),
            )
            .order_by(RoleMenuPermission.id)
            .all()
        )
        for row in rows:
            # First grant wins when several source roles cover the same menu
            desired.setdefault(row.menu_id, row.grant)
    elif data.assign_all_menus:
        for menu in active(db, Menu).filter(Menu.status == MENU_ACTIVE).all():
            desired[menu.id] = Visible()
    if desired:
        set_role_grants(db, role, desired, actor_id)
    db.commit()
    db.refresh(role)
    logger.info("Role created", extra={"role_id": role.id, "grants": len(desired)})
    return role_detail(db, role)


def list_roles(
    db: Session,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    status: str = "active",
) -> tuple[list[RoleOut], Pagination]:
    """status: 'active' (default), 'inactive' or 'all'."""
    query = db.query(Role)
    if status == "inactive":
        query = query.filter(Role.is_deleted.is_(True))
    elif status != "all":
        query = query.filter(Role.is_deleted.is_(False))
    if search:
        query = query.filter(Role.name.ilike(f"%{search.strip()}%"))
    total = query.count()
    roles = query.order_by(Role.id).offset((page - 1) * limit).limit(limit).all()
    return [RoleOut.model_validate(r) for r in roles], paginate(total, page, limit)


def list_role_names(db: Session) -> list[RoleOut]:
    return [RoleOut.model_validate(r) for r in active(db, Role).order_by(Role.name).all()]


def get_role(db: Session, role_id: int) -> RoleDetail:
    return role_detail(db, get_active_role(db, role_id))


def update_role(db: Session, role_id: int, data: RoleUpdate, actor_id: int | None) -> RoleOut:
    role = get_active_role(db, role_id)
    if _is_protected(role):
        raise ValidationError(f"Cannot edit the {role.name} role - it is protected")
    fields = data.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationError("No fields to update.")
    if fields.get("name"):
        fields["name"] = fields["name"].strip()
        _ensure_name_free(db, fields["name"], exclude_id=role.id)
    for key, value in fields.items():
        if value is not None:
            setattr(role, key, value)
    role.updated_by = actor_id
    db.commit()
    db.refresh(role)
    return RoleOut.model_validate(role)


def set_role_status(db: Session, role_id: int, enabled: bool, actor_id: int | None) -> tuple[RoleOut, str]:
    """
    Disable (soft-delete) or re-enable a role together with its grants.
    Protected roles and roles still held by active users cannot be disabled.
    """
    role = db.query(Role).filter(Role.id == role_id).first()
    if role is None:
        raise NotFoundError("Role not found or does not exist")
    if _is_protected(role):
        raise ValidationError(f"Cannot disable the {role.name} role - it is protected")
    if bool(role.is_deleted) != enabled:
        raise ValidationError(f"Role is already {'enabled' if enabled else 'disabled'}.")

    if not enabled:
        holders = active(db, UserProfile).filter(UserProfile.role_id == role.id).count()
        if holders > 0:
            raise ValidationError(
                f"Cannot disable the role. There are {holders} active user(s) assigned to this role. "
                "Please reassign or remove these users first."
            )
        active(db, RoleMenuPermission).filter(RoleMenuPermission.role_id == role.id).update(
            {RoleMenuPermission.is_deleted: True, RoleMenuPermission.updated_by: actor_id},
            synchronize_session=False,
        )
        message = "Role and associated permissions disabled successfully"
    else:
        # Revive the newest row per menu; older duplicates stay deleted
        latest: dict[int, RoleMenuPermission] = {}
        for row in (
            db.query(RoleMenuPermission)
            .filter(RoleMenuPermission.role_id == role.id)
            .order_by(RoleMenuPermission.id.desc())
        ):
            latest.setdefault(row.menu_id, row)
        for row in latest.values():
            row.is_deleted = False
            row.updated_by = actor_id
        message = "Role and associated permissions enabled successfully"

    role.is_deleted = not enabled
    role.updated_by = actor_id
    invalidate_role_sessions(db, role.id, utcnow())
    db.commit()
    db.refresh(role)
    logger.info("Role status changed", extra={"role_id": role.id, "enabled": enabled})
    return RoleOut.model_validate(role), message
