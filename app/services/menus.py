"""
Menu administration.

order_index is kept contiguous (0..n-1) among the non-deleted siblings of a
parent: inserting at K shifts siblings >= K up, removing closes the gap above
K, and a move between parents does both.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.base import active
from app.models.menu import MENU_ACTIVE, Menu
from app.models.role_menu_permission import RoleMenuPermission
from app.schemas.common import Pagination, paginate
from app.schemas.menus import MenuCreate, MenuNode, MenuOut, MenuUpdate
from app.services.access import build_menu_tree
from app.services.sessions import invalidate_role_sessions

logger = logging.getLogger(__name__)


def _siblings(db: Session, parent_id: int | None):
    query = active(db, Menu)
    if parent_id is None:
        return query.filter(Menu.parent_id.is_(None))
    return query.filter(Menu.parent_id == parent_id)


def _shift(db: Session, parent_id: int | None, from_index: int, delta: int, *, exclude_id: int | None = None) -> None:
    """Move every sibling at or above from_index by delta."""
    query = _siblings(db, parent_id).filter(Menu.order_index >= from_index)
    if exclude_id is not None:
        query = query.filter(Menu.id != exclude_id)
    query.update({Menu.order_index: Menu.order_index + delta}, synchronize_session=False)


def _get_menu(db: Session, menu_id: int) -> Menu:
    menu = active(db, Menu).filter(Menu.id == menu_id).first()
    if menu is None:
        raise NotFoundError("Menu not found")
    return menu


def _ensure_key_free(db: Session, menu_key: str, exclude_id: int | None = None) -> None:
    query = active(db, Menu).filter(Menu.menu_key == menu_key)
    if exclude_id is not None:
        query = query.filter(Menu.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Menu with this key already exists")


def _ensure_parent(db: Session, parent_id: int, moving_id: int | None = None) -> None:
    """Parent must exist and, for a move, must not be the menu itself or one of its descendants."""
    current: int | None = parent_id
    seen: set[int] = set()
    while current is not None and current not in seen:
        if current == moving_id:
            raise ValidationError("A menu cannot be moved under itself or one of its children.")
        seen.add(current)
        parent = active(db, Menu).filter(Menu.id == current).first()
        if parent is None:
            if current == parent_id:
                raise NotFoundError("Parent menu not found")
            break
        current = parent.parent_id


def create_menu(db: Session, data: MenuCreate, actor_id: int | None) -> MenuOut:
    _ensure_key_free(db, data.menu_key)
    if data.parent_id is not None:
        _ensure_parent(db, data.parent_id)

    count = _siblings(db, data.parent_id).count()
    index = count if data.order_index is None else min(data.order_index, count)
    _shift(db, data.parent_id, index, +1)

    menu = Menu(
        menu_key=data.menu_key,
        menu_name=data.menu_name,
        route=data.route,
        icon=data.icon,
        is_parent=data.is_parent,
        parent_id=data.parent_id,
        order_index=index,
        status=data.status,
        created_by=actor_id,
        updated_by=actor_id,
    )
    db.add(menu)
    db.commit()
    db.refresh(menu)
    logger.info("Menu created", extra={"menu_id": menu.id, "menu_key": menu.menu_key})
    return MenuOut.model_validate(menu)


def update_menu(db: Session, menu_id: int, data: MenuUpdate, actor_id: int | None) -> MenuOut:
    menu = _get_menu(db, menu_id)
    fields: dict[str, Any] = data.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationError("No fields to update.")

    if fields.get("menu_key") and fields["menu_key"] != menu.menu_key:
        _ensure_key_free(db, fields["menu_key"], exclude_id=menu.id)

    old_parent, old_index = menu.parent_id, menu.order_index
    new_parent = fields.pop("parent_id", old_parent)
    requested_index = fields.pop("order_index", None)
    if new_parent is not None and new_parent != old_parent:
        _ensure_parent(db, new_parent, moving_id=menu.id)

    moving = new_parent != old_parent
    if moving or (requested_index is not None and requested_index != old_index):
        # Close the gap at the old position
        _shift(db, old_parent, old_index + 1, -1, exclude_id=menu.id)
        count = _siblings(db, new_parent).filter(Menu.id != menu.id).count()
        new_index = count if requested_index is None else min(requested_index, count)
        # Open a slot at the new position
        _shift(db, new_parent, new_index, +1, exclude_id=menu.id)
        menu.parent_id = new_parent
        menu.order_index = new_index

    for key, value in fields.items():
        if value is not None:
            setattr(menu, key, value)
    menu.updated_by = actor_id
    db.commit()
    db.refresh(menu)
    return MenuOut.model_validate(menu)


def delete_menu(db: Session, menu_id: int, actor_id: int | None) -> None:
    """Soft-delete a leaf menu, close its sibling gap and drop its grants."""
    menu = _get_menu(db, menu_id)
    if _siblings(db, menu.id).count() > 0:
        raise ValidationError("Cannot delete menu with child items. Delete children first.")

    menu.is_deleted = True
    menu.updated_by = actor_id
    db.flush()
    _shift(db, menu.parent_id, menu.order_index + 1, -1, exclude_id=menu.id)

    grants = active(db, RoleMenuPermission).filter(RoleMenuPermission.menu_id == menu.id).all()
    now = utcnow()
    for role_id in sorted({g.role_id for g in grants}):
        invalidate_role_sessions(db, role_id, now)
    for grant in grants:
        grant.is_deleted = True
        grant.updated_by = actor_id
    db.commit()
    logger.info("Menu deleted", extra={"menu_id": menu.id, "grants_removed": len(grants)})


def list_menus(
    db: Session,
    page: int = 1,
    limit: int = 10,
    status: int | None = None,
    parent_id: int | None = None,
    roots_only: bool = False,
) -> tuple[list[MenuOut], Pagination]:
    query = active(db, Menu)
    if status is not None:
        query = query.filter(Menu.status == status)
    if roots_only:
        query = query.filter(Menu.parent_id.is_(None))
    elif parent_id is not None:
        query = query.filter(Menu.parent_id == parent_id)
    total = query.count()
    menus = query.order_by(Menu.order_index, Menu.id).offset((page - 1) * limit).limit(limit).all()
    return [MenuOut.model_validate(m) for m in menus], paginate(total, page, limit)


def menu_hierarchy(db: Session) -> list[MenuNode]:
    """Every active menu as a tree (admin view)."""
    return build_menu_tree(active(db, Menu).filter(Menu.status == MENU_ACTIVE).all())


def list_all_menus(db: Session) -> list[MenuOut]:
    menus = active(db, Menu).order_by(Menu.parent_id, Menu.order_index, Menu.id).all()
    return [MenuOut.model_validate(m) for m in menus]
