"""
Role -> menu grant mutations.

Every change to a role's effective grant set stamps permissions_updated_at on
the role's credentials (see sessions.invalidate_role_sessions) in the same
transaction, so tokens issued before the change stop working.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.errors import NotFoundError, ValidationError
from app.models.base import active
from app.models.menu import Menu
from app.models.permission import Permission
from app.models.role import Role
from app.models.role_menu_permission import Grant, RoleMenuPermission, SpecificPermission, Visible
from app.schemas.menus import BulkGrantResult
from app.schemas.roles import GrantIn, GrantOut
from app.services.sessions import invalidate_role_sessions

logger = logging.getLogger(__name__)


def to_grant(permission_id: int | None) -> Grant:
    return SpecificPermission(permission_id) if permission_id is not None else Visible()


def grant_out(row: RoleMenuPermission, menu: Menu | None = None) -> GrantOut:
    return GrantOut(
        id=row.id,
        role_id=row.role_id,
        menu_id=row.menu_id,
        menu_key=menu.menu_key if menu else None,
        menu_name=menu.menu_name if menu else None,
        grant_kind=row.grant_kind,
        permission_id=row.permission_id,
    )


def current_grants(db: Session, role_id: int) -> dict[int, Grant]:
    """menu_id -> grant for the role's active grants."""
    rows = active(db, RoleMenuPermission).filter(RoleMenuPermission.role_id == role_id).all()
    return {row.menu_id: row.grant for row in rows}


def list_role_grants(db: Session, role_id: int) -> list[GrantOut]:
    rows = (
        db.query(RoleMenuPermission, Menu)
        .join(Menu, Menu.id == RoleMenuPermission.menu_id)
        .filter(
            RoleMenuPermission.role_id == role_id,
            RoleMenuPermission.is_deleted.is_(False),
            Menu.is_deleted.is_(False),
        )
        .order_by(Menu.order_index, Menu.id)
        .all()
    )
    return [grant_out(row, menu) for row, menu in rows]


def _apply_grant_set(db: Session, role_id: int, desired: dict[int, Grant], actor_id: int | None) -> None:
    """
    Make the role's active rows match desired. Existing rows are reused
    (active ones first) so the (role, menu) uniqueness among active rows holds
    at every step of the flush.
    """
    rows = db.query(RoleMenuPermission).filter(RoleMenuPermission.role_id == role_id).all()
    rows.sort(key=lambda r: (bool(r.is_deleted), -r.id))
    reused: set[int] = set()
    for row in rows:
        if row.menu_id in desired and row.menu_id not in reused:
            reused.add(row.menu_id)
            if row.is_deleted or row.grant != desired[row.menu_id]:
                row.is_deleted = False
                row.grant = desired[row.menu_id]
                row.updated_by = actor_id
        elif not row.is_deleted:
            row.is_deleted = True
            row.updated_by = actor_id
    db.flush()
    for menu_id, grant in desired.items():
        if menu_id in reused:
            continue
        row = RoleMenuPermission(role_id=role_id, menu_id=menu_id, created_by=actor_id, updated_by=actor_id)
        row.grant = grant
        db.add(row)
    db.flush()


def set_role_grants(
    db: Session,
    role: Role,
    desired: dict[int, Grant],
    actor_id: int | None,
) -> bool:
    """
    Replace the role's grant set in the caller's transaction. Returns True
    and invalidates member tokens when the set actually changed.
    """
    previous = current_grants(db, role.id)
    _apply_grant_set(db, role.id, desired, actor_id)
    if previous == desired:
        return False
    invalidate_role_sessions(db, role.id, utcnow())
    return True


def _validate_items(db: Session, items: Iterable[GrantIn]) -> tuple[dict[int, Grant], list[dict]]:
    items = list(items)
    menu_ids = {i.menu_id for i in items}
    permission_ids = {i.permission_id for i in items if i.permission_id is not None}
    known_menus = {m.id for m in active(db, Menu).filter(Menu.id.in_(menu_ids))} if menu_ids else set()
    known_permissions = (
        {p.id for p in active(db, Permission).filter(Permission.id.in_(permission_ids))}
        if permission_ids
        else set()
    )
    desired: dict[int, Grant] = {}
    failed: list[dict] = []
    for item in items:
        if item.menu_id not in known_menus:
            failed.append({"menuId": item.menu_id, "error": "Menu not found or is deleted"})
        elif item.permission_id is not None and item.permission_id not in known_permissions:
            failed.append({"menuId": item.menu_id, "error": "Permission not found or is deleted"})
        else:
            desired[item.menu_id] = to_grant(item.permission_id)
    return desired, failed


def get_active_role(db: Session, role_id: int) -> Role:
    role = active(db, Role).filter(Role.id == role_id).first()
    if role is None:
        raise NotFoundError("Role not found")
    return role


def replace_role_grants(db: Session, role_id: int, items: list[GrantIn], actor_id: int | None) -> list[GrantOut]:
    """All-or-nothing replace; any unknown menu or permission rejects the whole request."""
    role = get_active_role(db, role_id)
    desired, failed = _validate_items(db, items)
    if failed:
        raise ValidationError("Some grants reference unknown menus or permissions.", data={"failed": failed})
    changed = set_role_grants(db, role, desired, actor_id)
    role.updated_by = actor_id
    db.commit()
    logger.info("Role grants replaced", extra={"role_id": role.id, "grants": len(desired), "changed": changed})
    return list_role_grants(db, role.id)


def bulk_assign(db: Session, role_id: int, items: list[GrantIn], actor_id: int | None) -> BulkGrantResult:
    """Replace-all that skips and reports unknown menus instead of failing."""
    role = get_active_role(db, role_id)
    desired, failed = _validate_items(db, items)
    set_role_grants(db, role, desired, actor_id)
    db.commit()
    return BulkGrantResult(assigned=sorted(desired), failed=failed)


def assign_grant(
    db: Session,
    role_id: int,
    menu_id: int,
    permission_id: int | None,
    actor_id: int | None,
) -> tuple[GrantOut, str]:
    """Upsert one grant. Returns the grant and 'created' or 'updated'."""
    role = get_active_role(db, role_id)
    menu = active(db, Menu).filter(Menu.id == menu_id).first()
    if menu is None:
        raise NotFoundError("Menu not found")
    if permission_id is not None and active(db, Permission).filter(Permission.id == permission_id).first() is None:
        raise NotFoundError("Permission not found.")

    desired = current_grants(db, role.id)
    status = "updated" if menu_id in desired else "created"
    desired[menu_id] = to_grant(permission_id)
    set_role_grants(db, role, desired, actor_id)
    db.commit()
    row = (
        active(db, RoleMenuPermission)
        .filter(RoleMenuPermission.role_id == role.id, RoleMenuPermission.menu_id == menu_id)
        .one()
    )
    return grant_out(row, menu), status


def remove_grant(db: Session, grant_id: int, actor_id: int | None) -> None:
    row = active(db, RoleMenuPermission).filter(RoleMenuPermission.id == grant_id).first()
    if row is None:
        raise NotFoundError("Menu permission not found")
    row.is_deleted = True
    row.updated_by = actor_id
    invalidate_role_sessions(db, row.role_id, utcnow())
    db.commit()


def list_menu_grants(db: Session, menu_id: int) -> list[GrantOut]:
    menu = active(db, Menu).filter(Menu.id == menu_id).first()
    if menu is None:
        raise NotFoundError("Menu not found")
    rows = (
        active(db, RoleMenuPermission)
        .join(Role, Role.id == RoleMenuPermission.role_id)
        .filter(RoleMenuPermission.menu_id == menu_id, Role.is_deleted.is_(False))
        .order_by(RoleMenuPermission.id)
        .all()
    )
    return [grant_out(row, menu) for row in rows]
