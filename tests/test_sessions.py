"""Integration tests for refresh, logout, session binding and permission-change invalidation."""

import unittest
from datetime import timedelta
from unittest.mock import patch

from sqlalchemy import update
from sqlalchemy.orm import object_session

from app.core.clock import as_utc, utcnow
from app.models import Credential
from app.services.sessions import PERMISSIONS_CHANGED_MESSAGE
from tests.support import API, ApiTestCase, seed_account, seed_role


class TestSessionBinding(ApiTestCase):
    """Roles with session_binding_required keep only the newest session alive."""

    def setUp(self) -> None:
        super().setUp()
        with self.Session() as db:
            bound = seed_role(db, "Payroll", session_binding_required=True)
            free = seed_role(db, "Staff")
            seed_account(db, "frank", role=bound)
            seed_account(db, "gina", role=free)
            db.commit()

    def _refresh(self, refresh_token: str):
        return self.client.post(f"{API}/auth/refresh-token", json={"refreshToken": refresh_token})

    def test_newer_login_replaces_bound_session(self) -> None:
        first = self.login_tokens("frank")
        second = self.login_tokens("frank")

        response = self._refresh(first["refreshToken"])
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["message"], "Invalid session. Please log in again.")

        response = self.client.get(f"{API}/auth/me", headers=self.bearer(first["token"]))
        self.assertEqual(response.status_code, 403)

        response = self._refresh(second["refreshToken"])
        self.assertEqual(response.status_code, 200, response.text)
        pair = response.json()
        self.assertTrue(pair["accessToken"])
        self.assertTrue(pair["refreshToken"])
        response = self.client.get(f"{API}/auth/me", headers=self.bearer(pair["accessToken"]))
        self.assertEqual(response.status_code, 200)

    def test_unbound_role_keeps_every_session(self) -> None:
        first = self.login_tokens("gina")
        self.login_tokens("gina")
        self.assertEqual(self._refresh(first["refreshToken"]).status_code, 200)
        response = self.client.get(f"{API}/auth/me", headers=self.bearer(first["token"]))
        self.assertEqual(response.status_code, 200)

    def test_logout_ends_bound_session(self) -> None:
        tokens = self.login_tokens("frank")
        headers = self.bearer(tokens["token"])
        self.assertEqual(self.client.put(f"{API}/auth/logout", headers=headers).status_code, 200)
        self.assertEqual(self.client.get(f"{API}/auth/me", headers=headers).status_code, 403)
        self.assertEqual(self._refresh(tokens["refreshToken"]).status_code, 403)


class TestSessionBindingRaces(ApiTestCase):
    """A session binding is only ever replaced by a newer one."""

    def setUp(self) -> None:
        super().setUp()
        with self.Session() as db:
            bound = seed_role(db, "Payroll", session_binding_required=True)
            seed_account(db, "olga", role=bound)
            db.commit()

    def _credential(self) -> Credential:
        with self.Session() as db:
            credential = db.query(Credential).filter(Credential.username == "olga").one()
            db.expunge(credential)
            return credential

    def test_login_older_than_stored_binding_gets_conflict(self) -> None:
        newer = utcnow() + timedelta(minutes=5)
        with self.Session() as db:
            db.query(Credential).filter(Credential.username == "olga").update(
                {Credential.session_id: "newer-session", Credential.session_issued_at: newer}
            )
            db.commit()

        response = self.login("olga")
        self.assertEqual(response.status_code, 409)
        self.assertIn("newer login", response.json()["message"])

        credential = self._credential()
        self.assertEqual(credential.session_id, "newer-session")
        self.assertEqual(as_utc(credential.session_issued_at), newer)

    def test_refresh_loses_to_rotation_after_session_check(self) -> None:
        tokens = self.login_tokens("olga")

        def rotate_session(credential, claims):
            # Another login binds a new session between the check and the write
            object_session(credential).execute(
                update(Credential).where(Credential.id == credential.id).values(session_id="rotated")
            )

        with patch("app.services.sessions._check_permissions_fresh", side_effect=rotate_session):
            response = self.client.post(f"{API}/auth/refresh-token", json={"refreshToken": tokens["refreshToken"]})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["message"], "Invalid session. Please log in again.")

        response = self.client.post(f"{API}/auth/refresh-token", json={"refreshToken": tokens["refreshToken"]})
        self.assertEqual(response.status_code, 200, response.text)


class TestTokenPurposes(ApiTestCase):
    """A token only works for the step it was issued for."""

    def setUp(self) -> None:
        super().setUp()
        with self.Session() as db:
            seed_account(db, "hank")
            db.commit()

    def test_refresh_token_is_not_an_access_token(self) -> None:
        tokens = self.login_tokens("hank")
        response = self.client.get(f"{API}/auth/me", headers=self.bearer(tokens["refreshToken"]))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Invalid token")

    def test_access_token_cannot_refresh(self) -> None:
        tokens = self.login_tokens("hank")
        response = self.client.post(f"{API}/auth/refresh-token", json={"refreshToken": tokens["token"]})
        self.assertEqual(response.status_code, 401)

    def test_missing_bearer(self) -> None:
        response = self.client.get(f"{API}/auth/me")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "Not authorized, token missing")
        self.assertEqual(response.headers.get("WWW-Authenticate"), "Bearer")

    def test_garbage_token(self) -> None:
        response = self.client.get(f"{API}/auth/me", headers=self.bearer("not-a-jwt"))
        self.assertEqual(response.status_code, 401)


class TestPermissionChangeInvalidatesTokens(ApiTestCase):
    """Editing a role's grants forces its members to log in again."""

    def setUp(self) -> None:
        super().setUp()
        ids = self.seed_admin()
        self.menu_ids = ids["menu_ids"]
        with self.Session() as db:
            staff = seed_role(db, "Staff")
            self.staff_role_id = staff.id
            seed_account(db, "ivy", role=staff)
            db.commit()
        self.admin = self.admin_headers()

    def _replace(self, menu_keys: list[str]):
        body = {"permissions": [{"menuId": self.menu_ids[key]} for key in menu_keys]}
        response = self.client.put(f"{API}/roles/{self.staff_role_id}/permissions", json=body, headers=self.admin)
        self.assertEqual(response.status_code, 200, response.text)
        return response

    def test_grant_edit_rejects_older_tokens(self) -> None:
        self._replace(["users"])
        tokens = self.login_tokens("ivy")
        self._replace(["roles"])

        response = self.client.get(f"{API}/auth/me", headers=self.bearer(tokens["token"]))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], PERMISSIONS_CHANGED_MESSAGE)

        response = self.client.post(f"{API}/auth/refresh-token", json={"refreshToken": tokens["refreshToken"]})
        self.assertEqual(response.status_code, 401)

        fresh = self.login_tokens("ivy")
        response = self.client.get(f"{API}/auth/me", headers=self.bearer(fresh["token"]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["menuKeys"], ["roles"])

    def test_unchanged_grant_set_keeps_tokens(self) -> None:
        self._replace(["users"])
        tokens = self.login_tokens("ivy")
        self._replace(["users"])
        response = self.client.get(f"{API}/auth/me", headers=self.bearer(tokens["token"]))
        self.assertEqual(response.status_code, 200)

    def test_removing_single_grant_rejects_older_tokens(self) -> None:
        self._replace(["users", "menus"])
        tokens = self.login_tokens("ivy")
        grants = self.client.get(f"{API}/roles/{self.staff_role_id}/permissions", headers=self.admin).json()["data"]
        grant_id = next(g["id"] for g in grants if g["menuKey"] == "menus")

        response = self.client.delete(f"{API}/menus/permissions/{grant_id}", headers=self.admin)
        self.assertEqual(response.status_code, 200)
        response = self.client.get(f"{API}/auth/me", headers=self.bearer(tokens["token"]))
        self.assertEqual(response.status_code, 401)


if __name__ == "__main__":
    unittest.main()
