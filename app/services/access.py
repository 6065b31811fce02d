"""Role -> menu resolution: the caller's menu tree and the menu-key permission gates."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy.orm import Session

from app.core.errors import AuthenticationError, AuthorizationError
from app.models.base import active
from app.models.menu import MENU_ACTIVE, Menu
from app.models.role_menu_permission import RoleMenuPermission
from app.schemas.menus import MenuNode


def build_menu_tree(menus: Iterable[Menu]) -> list[MenuNode]:
    """
    Assemble parent -> children nesting from a flat list of menus.

    Duplicates are collapsed by id and siblings are ordered by (order_index, id),
    so the result does not depend on the input order. A menu whose parent is not
    in the list is dropped rather than promoted to the root.
    """
    unique = {m.id: m for m in menus}
    ordered = sorted(unique.values(), key=lambda m: (m.order_index, m.id))
    nodes = {m.id: MenuNode.model_validate(m) for m in ordered}

    roots: list[MenuNode] = []
    for menu in ordered:
        node = nodes[menu.id]
        if menu.parent_id is None:
            roots.append(node)
        elif menu.parent_id in nodes:
            nodes[menu.parent_id].children.append(node)
    return roots


def _granted_menus_query(db: Session, role_id: int):
    return (
        active(db, Menu)
        .join(RoleMenuPermission, RoleMenuPermission.menu_id == Menu.id)
        .filter(
            RoleMenuPermission.role_id == role_id,
            RoleMenuPermission.is_deleted.is_(False),
        )
    )


def resolve_menu_tree(db: Session, role_id: int | None) -> list[MenuNode]:
    """Menus visible to the role (active grants on active, non-deleted menus) as a tree."""
    if role_id is None:
        raise AuthenticationError("User role not found or user is not authenticated.")
    menus = _granted_menus_query(db, role_id).filter(Menu.status == MENU_ACTIVE).all()
    return build_menu_tree(menus)


def granted_menu_keys(db: Session, role_id: int | None) -> list[str]:
    if role_id is None:
        return []
    rows = _granted_menus_query(db, role_id).with_entities(Menu.menu_key).distinct().all()
    return sorted(key for (key,) in rows)


def has_any_menu_permission(db: Session, role_id: int, menu_keys: Sequence[str]) -> bool:
    return (
        _granted_menus_query(db, role_id).filter(Menu.menu_key.in_(list(menu_keys))).first()
        is not None
    )


def check_permission(db: Session, role_id: int | None, menu_key: str) -> None:
    """Raise unless the role holds an active grant on the menu with this key."""
    check_any_permission(db, role_id, [menu_key])


def check_any_permission(db: Session, role_id: int | None, menu_keys: Sequence[str]) -> None:
    """
    Raise unless the role holds an active grant on at least one of the menus.
    Unknown keys deny with 403 like a missing grant does.
    """
    if role_id is None:
        raise AuthenticationError("User not authenticated or role not assigned")
    menus = active(db, Menu).filter(Menu.menu_key.in_(list(menu_keys))).all()
    if not menus:
        raise AuthorizationError("Access denied.")
    if not has_any_menu_permission(db, role_id, menu_keys):
        names = " OR ".join(f"'{m.menu_name}'" for m in sorted(menus, key=lambda m: m.id))
        raise AuthorizationError(f"Access denied. Required permission for: {names}")
