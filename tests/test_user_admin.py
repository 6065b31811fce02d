"""Integration tests for role reassignment and profile completion."""

import unittest

from app.models import Credential, Role, UserProfile
from app.services.sessions import PERMISSIONS_CHANGED_MESSAGE
from tests.support import API, ApiTestCase, seed_account, seed_role


class TestUserRoleChange(ApiTestCase):
    """Moving an account to another role revokes its current tokens."""

    def setUp(self) -> None:
        super().setUp()
        self.seed_admin()
        with self.Session() as db:
            payroll = seed_role(db, "Payroll", session_binding_required=True)
            recruiter = seed_role(db, "Recruiter")
            retired = seed_role(db, "Retired")
            retired.is_deleted = True
            credential = seed_account(db, "nora", role=payroll)
            self.payroll_id = payroll.id
            self.recruiter_id = recruiter.id
            self.retired_id = retired.id
            self.user_id = credential.user_id
            db.commit()
        self.admin = self.admin_headers()

    def _change_role(self, role_id: int, user_id: int | None = None, headers=None):
        return self.client.patch(
            f"{API}/auth/users/{user_id or self.user_id}/role",
            json={"roleId": role_id},
            headers=headers or self.admin,
        )

    def test_tokens_issued_before_change_are_rejected(self) -> None:
        tokens = self.login_tokens("nora")

        response = self._change_role(self.recruiter_id)
        self.assertEqual(response.status_code, 200, response.text)
        data = response.json()["data"]
        self.assertEqual(data["roleId"], self.recruiter_id)
        self.assertEqual(data["rolename"], "Recruiter")

        response = self.client.get(f"{API}/auth/me", headers=self.bearer(tokens["token"]))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], PERMISSIONS_CHANGED_MESSAGE)
        response = self.client.post(f"{API}/auth/refresh-token", json={"refreshToken": tokens["refreshToken"]})
        self.assertEqual(response.status_code, 401)

        fresh = self.login_tokens("nora")
        response = self.client.get(f"{API}/auth/me", headers=self.bearer(fresh["token"]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["rolename"], "Recruiter")

    def test_profile_and_credential_move_together(self) -> None:
        self.login_tokens("nora")
        self._change_role(self.recruiter_id)

        with self.Session() as db:
            credential = db.query(Credential).filter(Credential.username == "nora").one()
            profile = db.get(UserProfile, self.user_id)
            self.assertEqual(credential.role_id, self.recruiter_id)
            self.assertEqual(profile.role_id, self.recruiter_id)
            self.assertIsNone(credential.session_id)
            self.assertIsNone(credential.session_expires_at)
            self.assertIsNotNone(credential.permissions_updated_at)

        # The old role has no holders left, so it can be disabled
        response = self.client.patch(
            f"{API}/roles/{self.payroll_id}/status", json={"status": "disabled"}, headers=self.admin
        )
        self.assertEqual(response.status_code, 200, response.text)

    def test_same_role_keeps_tokens(self) -> None:
        tokens = self.login_tokens("nora")
        self.assertEqual(self._change_role(self.payroll_id).status_code, 200)
        response = self.client.get(f"{API}/auth/me", headers=self.bearer(tokens["token"]))
        self.assertEqual(response.status_code, 200)

    def test_unknown_or_disabled_role(self) -> None:
        self.assertEqual(self._change_role(9999).status_code, 404)
        response = self._change_role(self.retired_id)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["message"], "The specified role was not found.")
        with self.Session() as db:
            self.assertEqual(db.get(UserProfile, self.user_id).role_id, self.payroll_id)

    def test_unknown_user(self) -> None:
        self.assertEqual(self._change_role(self.recruiter_id, user_id=9999).status_code, 404)

    def test_requires_users_menu(self) -> None:
        with self.Session() as db:
            staff = db.query(Role).filter(Role.name == "Recruiter").one()
            seed_account(db, "pete", role=staff)
            db.commit()
        headers = self.bearer(self.login_tokens("pete")["token"])
        self.assertEqual(self._change_role(self.recruiter_id, headers=headers).status_code, 403)


class TestCompleteProfile(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        with self.Session() as db:
            seed_account(db, "quinn")
            db.commit()

    def test_marks_profile_complete_once(self) -> None:
        tokens = self.login_tokens("quinn")
        self.assertFalse(tokens["isProfileCompleted"])
        headers = self.bearer(tokens["token"])

        response = self.client.patch(f"{API}/auth/complete-profile", headers=headers)
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(body["message"], "Profile marked as complete.")
        self.assertEqual(body["data"], {"isProfileCompleted": True})
        self.assertEqual(len(self.mailer.sent), 1)
        self.assertEqual(self.mailer.sent[0].to, "quinn@acme-hr.com")

        response = self.client.patch(f"{API}/auth/complete-profile", headers=headers)
        self.assertEqual(response.json()["message"], "Profile was already marked as complete.")
        self.assertEqual(len(self.mailer.sent), 1)

        self.assertTrue(self.login_tokens("quinn")["isProfileCompleted"])

    def test_requires_access_token(self) -> None:
        self.assertEqual(self.client.patch(f"{API}/auth/complete-profile").status_code, 401)


if __name__ == "__main__":
    unittest.main()
