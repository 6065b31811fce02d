"""
Bootstrap the first administrator. Run from project root:
  python -m app.scripts.create_user USERNAME EMAIL PASSWORD [--role NAME]
Example:
  python -m app.scripts.create_user admin admin@example.com 'Str0ng!Passw0rd'

Seeds the administration menus (users, roles, menus, permissions,
security-settings), creates the role with a visible grant on each of them
and an active account that can log in immediately without MFA.
"""
import argparse
import logging
import sys

from app.core.config import settings
from app.core.database import SessionLocal
from app.core.security import INITIAL_PASSWORD_MIN_LEN, hash_password, password_meets_policy
from app.models import Credential, Menu, Role, RoleMenuPermission, UserProfile, Visible
from app.models.base import active

logger = logging.getLogger(__name__)

ADMIN_MENUS = (
    ("users", "Users", "/users", "users"),
    ("roles", "Roles", "/roles", "shield"),
    ("menus", "Menus", "/menus", "list"),
    ("permissions", "Permissions", "/permissions", "key"),
    ("security-settings", "Security Settings", "/security-settings", "lock"),
)


def _ensure_menus(db) -> list[Menu]:
    menus = []
    next_index = active(db, Menu).filter(Menu.parent_id.is_(None)).count()
    for key, name, route, icon in ADMIN_MENUS:
        menu = active(db, Menu).filter(Menu.menu_key == key).first()
        if menu is None:
            menu = Menu(menu_key=key, menu_name=name, route=route, icon=icon, order_index=next_index)
            db.add(menu)
            next_index += 1
        menus.append(menu)
    db.flush()
    return menus


def _ensure_role(db, name: str, menus: list[Menu]) -> Role:
    role = active(db, Role).filter(Role.name == name).first()
    if role is None:
        role = Role(name=name, description="Full back-office administration")
        db.add(role)
        db.flush()
    granted = {
        g.menu_id for g in active(db, RoleMenuPermission).filter(RoleMenuPermission.role_id == role.id)
    }
    for menu in menus:
        if menu.id not in granted:
            grant = RoleMenuPermission(role_id=role.id, menu_id=menu.id)
            grant.grant = Visible()
            db.add(grant)
    return role


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the first HRMS administrator.")
    parser.add_argument("username", help="Login name (1-255 chars)")
    parser.add_argument("email", help="E-mail address of the administrator")
    parser.add_argument("password", help=f"Password ({INITIAL_PASSWORD_MIN_LEN}+ chars, mixed character classes)")
    parser.add_argument("--role", default=settings.PROTECTED_ROLE_NAMES[0], help="Role name to create or reuse")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    username = args.username.strip()
    email = args.email.strip().lower()
    if not username or len(username) > 255:
        print("Invalid username length.", file=sys.stderr)
        return 1
    if "@" not in email:
        print("Invalid e-mail address.", file=sys.stderr)
        return 1
    if not password_meets_policy(args.password, INITIAL_PASSWORD_MIN_LEN):
        print(
            f"Password must be at least {INITIAL_PASSWORD_MIN_LEN} characters and include upper and lower case "
            "letters, a digit and a special character.",
            file=sys.stderr,
        )
        return 1

    db = SessionLocal()
    try:
        if db.query(Credential).filter((Credential.username == username) | (Credential.email == email)).first():
            print(f"An account with username '{username}' or e-mail '{email}' already exists.", file=sys.stderr)
            return 1
        role = _ensure_role(db, args.role, _ensure_menus(db))
        profile = UserProfile(email=email, role_id=role.id, status="active", first_name=username)
        db.add(profile)
        db.flush()
        db.add(
            Credential(
                username=username,
                email=email,
                password_hash=hash_password(args.password),
                user_id=profile.id,
                role_id=role.id,
                mfa_enabled=False,
                password_reset_required=False,
            )
        )
        db.commit()
        logger.info("Administrator created", extra={"username": username, "role": role.name})
        print(f"Created administrator '{username}' with role '{role.name}'.")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
