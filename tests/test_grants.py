"""Tests for role -> menu grants and the menu-key permission checks."""

import unittest

from app.core.errors import AuthenticationError, AuthorizationError, NotFoundError, ValidationError
from app.models import Credential, Menu, Permission, RoleMenuPermission, SpecificPermission, Visible
from app.schemas.roles import GrantIn
from app.services.access import check_any_permission, check_permission, granted_menu_keys
from app.services.grants import (
    assign_grant,
    bulk_assign,
    current_grants,
    remove_grant,
    replace_role_grants,
    set_role_grants,
)
from tests.support import DatabaseTestCase, seed_account, seed_menus, seed_role


class TestGrantVariant(unittest.TestCase):
    """grant_kind and permission_id always agree."""

    def test_specific_permission(self) -> None:
        row = RoleMenuPermission(role_id=1, menu_id=1)
        row.grant = SpecificPermission(7)
        self.assertEqual(row.grant_kind, "permission")
        self.assertEqual(row.permission_id, 7)
        self.assertEqual(row.grant, SpecificPermission(7))

    def test_visible_clears_permission(self) -> None:
        row = RoleMenuPermission(role_id=1, menu_id=1)
        row.grant = SpecificPermission(7)
        row.grant = Visible()
        self.assertEqual(row.grant_kind, "visible")
        self.assertIsNone(row.permission_id)
        self.assertEqual(row.grant, Visible())


class TestGrantMutations(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.menus = seed_menus(self.db, ("dashboard", "payroll", "leave"))
        self.role = seed_role(self.db, "Manager")
        self.permission = Permission(name="approve-leave")
        self.db.add(self.permission)
        self.member = seed_account(self.db, "uma", role=self.role)
        self.db.commit()

    def _stamp(self):
        return self.db.get(Credential, self.member.id).permissions_updated_at

    def test_assign_specific_then_visible(self) -> None:
        leave = self.menus["leave"]
        grant, status = assign_grant(self.db, self.role.id, leave.id, self.permission.id, actor_id=None)
        self.assertEqual(status, "created")
        self.assertEqual(grant.grant_kind, "permission")
        self.assertEqual(grant.permission_id, self.permission.id)
        check_permission(self.db, self.role.id, "leave")

        grant, status = assign_grant(self.db, self.role.id, leave.id, None, actor_id=None)
        self.assertEqual(status, "updated")
        self.assertEqual(grant.grant_kind, "visible")
        active_rows = (
            self.db.query(RoleMenuPermission)
            .filter(RoleMenuPermission.menu_id == leave.id, RoleMenuPermission.is_deleted.is_(False))
            .count()
        )
        self.assertEqual(active_rows, 1)

    def test_assign_unknown_permission(self) -> None:
        with self.assertRaises(NotFoundError):
            assign_grant(self.db, self.role.id, self.menus["leave"].id, 999, actor_id=None)

    def test_remove_grant_denies_access(self) -> None:
        grant, _ = assign_grant(self.db, self.role.id, self.menus["payroll"].id, None, actor_id=None)
        remove_grant(self.db, grant.id, actor_id=None)
        with self.assertRaises(AuthorizationError) as ctx:
            check_permission(self.db, self.role.id, "payroll")
        self.assertIn("'Payroll'", ctx.exception.message)

    def test_replace_is_all_or_nothing(self) -> None:
        replace_role_grants(self.db, self.role.id, [GrantIn(menu_id=self.menus["dashboard"].id)], actor_id=None)
        items = [GrantIn(menu_id=self.menus["payroll"].id), GrantIn(menu_id=12345)]
        with self.assertRaises(ValidationError) as ctx:
            replace_role_grants(self.db, self.role.id, items, actor_id=None)
        self.assertEqual(ctx.exception.data["failed"][0]["menuId"], 12345)
        self.assertEqual(granted_menu_keys(self.db, self.role.id), ["dashboard"])

    def test_replace_reuses_deleted_rows(self) -> None:
        dashboard = self.menus["dashboard"].id
        payroll = self.menus["payroll"].id
        replace_role_grants(self.db, self.role.id, [GrantIn(menu_id=dashboard)], actor_id=None)
        replace_role_grants(self.db, self.role.id, [GrantIn(menu_id=payroll)], actor_id=None)
        replace_role_grants(self.db, self.role.id, [GrantIn(menu_id=dashboard)], actor_id=None)
        rows = self.db.query(RoleMenuPermission).filter(RoleMenuPermission.role_id == self.role.id).all()
        self.assertEqual(len(rows), 2)
        self.assertEqual(current_grants(self.db, self.role.id), {dashboard: Visible()})

    def test_bulk_assign_reports_failures(self) -> None:
        items = [
            GrantIn(menu_id=self.menus["dashboard"].id),
            GrantIn(menu_id=self.menus["leave"].id, permission_id=self.permission.id),
            GrantIn(menu_id=777),
        ]
        result = bulk_assign(self.db, self.role.id, items, actor_id=None)
        self.assertEqual(sorted(result.assigned), sorted([self.menus["dashboard"].id, self.menus["leave"].id]))
        self.assertEqual(len(result.failed), 1)
        self.assertEqual(granted_menu_keys(self.db, self.role.id), ["dashboard", "leave"])

    def test_only_real_changes_stamp_members(self) -> None:
        desired = {self.menus["dashboard"].id: Visible()}
        self.assertTrue(set_role_grants(self.db, self.role, desired, actor_id=None))
        self.db.commit()
        first = self._stamp()
        self.assertIsNotNone(first)

        self.assertFalse(set_role_grants(self.db, self.role, dict(desired), actor_id=None))
        self.db.commit()
        self.assertEqual(self._stamp(), first)

    def test_invalidation_clears_session_binding(self) -> None:
        self.db.query(Credential).filter(Credential.id == self.member.id).update({Credential.session_id: "abc"})
        self.db.commit()
        assign_grant(self.db, self.role.id, self.menus["dashboard"].id, None, actor_id=None)
        self.assertIsNone(self.db.get(Credential, self.member.id).session_id)


class TestPermissionChecks(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        menus = seed_menus(self.db, ("dashboard", "payroll"))
        self.role = seed_role(self.db, "Clerk", [menus["dashboard"]])
        self.db.commit()

    def test_granted_key(self) -> None:
        check_permission(self.db, self.role.id, "dashboard")

    def test_any_of_several_keys(self) -> None:
        check_any_permission(self.db, self.role.id, ["payroll", "dashboard"])
        with self.assertRaises(AuthorizationError):
            check_any_permission(self.db, self.role.id, ["payroll"])

    def test_unknown_key_is_generic_denial(self) -> None:
        with self.assertRaises(AuthorizationError) as ctx:
            check_permission(self.db, self.role.id, "does-not-exist")
        self.assertEqual(ctx.exception.message, "Access denied.")

    def test_no_role(self) -> None:
        with self.assertRaises(AuthenticationError):
            check_permission(self.db, None, "dashboard")

    def test_deleted_menu_is_not_granted(self) -> None:
        self.db.query(Menu).filter(Menu.menu_key == "dashboard").update({Menu.is_deleted: True})
        self.db.commit()
        self.assertEqual(granted_menu_keys(self.db, self.role.id), [])


if __name__ == "__main__":
    unittest.main()
