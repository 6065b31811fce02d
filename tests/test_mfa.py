"""Tests for TOTP verification and the MFA enrolment / challenge endpoints."""

import time
import unittest

import pyotp

from app.models import Credential
from app.services.mfa import generate_provisioning_qr, generate_secret, verify_token
from tests.support import API, ApiTestCase, seed_account


class TestVerifyToken(unittest.TestCase):
    """verify_token accepts codes within two 30-second steps of now."""

    def setUp(self) -> None:
        self.secret = pyotp.random_base32()
        self.totp = pyotp.TOTP(self.secret)

    def test_current_code(self) -> None:
        self.assertTrue(verify_token(self.secret, self.totp.now()))

    def test_code_from_about_a_minute_ago(self) -> None:
        self.assertTrue(verify_token(self.secret, self.totp.at(time.time() - 55)))

    def test_code_outside_window(self) -> None:
        self.assertFalse(verify_token(self.secret, self.totp.at(time.time() - 150)))

    def test_code_for_another_secret(self) -> None:
        other = pyotp.TOTP(pyotp.random_base32())
        self.assertFalse(verify_token(self.secret, other.now()))

    def test_missing_or_malformed_secret(self) -> None:
        self.assertFalse(verify_token(None, "123456"))
        self.assertFalse(verify_token(self.secret, None))
        self.assertFalse(verify_token("not base32 !!", "123456"))


class TestProvisioning(unittest.TestCase):
    def test_secret_and_uri(self) -> None:
        secret, uri = generate_secret("kim@acme-hr.com")
        self.assertTrue(uri.startswith("otpauth://totp/"))
        self.assertIn(secret, uri)
        self.assertIn("issuer=", uri)

    def test_qr_is_png_data_uri(self) -> None:
        _, uri = generate_secret("kim@acme-hr.com")
        self.assertTrue(generate_provisioning_qr(uri).startswith("data:image/png;base64,"))


class TestMfaEnrolmentFlow(ApiTestCase):
    """Login with MFA required but no confirmed secret walks through setup, then the challenge."""

    def setUp(self) -> None:
        super().setUp()
        with self.Session() as db:
            seed_account(db, "kim", mfa_enabled=True)
            db.commit()

    def _setup_login(self) -> dict:
        response = self.login("kim")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "mfaSetupRequired")
        data = body["data"]
        self.assertTrue(data["mfaSetupRequired"])
        self.assertTrue(data["qrCodeUrl"].startswith("data:image/png;base64,"))
        self.assertTrue(data["secret"])
        return data

    def test_setup_then_challenge(self) -> None:
        data = self._setup_login()
        headers = self.bearer(data["token"])
        code = pyotp.TOTP(data["secret"]).now()

        response = self.client.post(f"{API}/mfa/verify-setup", json={"token": code}, headers=headers)
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["data"], {"verified": True})

        response = self.client.post(f"{API}/mfa/validate", json={"token": code}, headers=headers)
        self.assertEqual(response.status_code, 200, response.text)
        session = response.json()["data"]
        self.assertTrue(session["refreshToken"])
        me = self.client.get(f"{API}/auth/me", headers=self.bearer(session["token"]))
        self.assertEqual(me.status_code, 200)

        response = self.login("kim")
        self.assertEqual(response.json()["status"], "mfaRequired")
        self.assertNotIn("secret", response.json()["data"])

    def test_wrong_setup_code_keeps_mfa_unconfirmed(self) -> None:
        data = self._setup_login()
        wrong = pyotp.TOTP(pyotp.random_base32()).now()
        response = self.client.post(
            f"{API}/mfa/verify-setup", json={"token": wrong}, headers=self.bearer(data["token"])
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.login("kim").json()["status"], "mfaSetupRequired")

    def test_challenge_token_cannot_replace_confirmed_secret(self) -> None:
        data = self._setup_login()
        headers = self.bearer(data["token"])
        code = pyotp.TOTP(data["secret"]).now()
        self.client.post(f"{API}/mfa/verify-setup", json={"token": code}, headers=headers)

        challenge = self.login("kim").json()["data"]["token"]
        response = self.client.post(f"{API}/mfa/generate", headers=self.bearer(challenge))
        self.assertEqual(response.status_code, 403)

        session = self.client.post(
            f"{API}/mfa/validate", json={"token": code}, headers=self.bearer(challenge)
        ).json()["data"]
        response = self.client.post(f"{API}/mfa/generate", headers=self.bearer(session["token"]))
        self.assertEqual(response.status_code, 200)
        new_secret = response.json()["data"]["secret"]
        self.assertNotEqual(new_secret, data["secret"])

        # Until the new secret is confirmed the old one still answers the challenge
        challenge = self.login("kim").json()["data"]["token"]
        response = self.client.post(
            f"{API}/mfa/validate",
            json={"token": pyotp.TOTP(data["secret"]).now()},
            headers=self.bearer(challenge),
        )
        self.assertEqual(response.status_code, 200)


class TestMfaChallenge(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.secret = pyotp.random_base32()
        with self.Session() as db:
            seed_account(db, "lena", mfa_enabled=True, mfa_secret=self.secret)
            db.commit()

    def test_invalid_code(self) -> None:
        token = self.login("lena").json()["data"]["token"]
        wrong = pyotp.TOTP(pyotp.random_base32()).now()
        response = self.client.post(f"{API}/mfa/validate", json={"token": wrong}, headers=self.bearer(token))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["message"], "Invalid MFA token.")

    def _validate(self, token: str, code: str):
        return self.client.post(f"{API}/mfa/validate", json={"token": code}, headers=self.bearer(token))

    def _credential(self) -> Credential:
        with self.Session() as db:
            credential = db.query(Credential).filter(Credential.username == "lena").one()
            db.expunge(credential)
            return credential

    def test_wrong_codes_lock_the_account(self) -> None:
        token = self.login("lena").json()["data"]["token"]
        wrong = pyotp.TOTP(pyotp.random_base32()).now()
        for _ in range(2):
            self.assertEqual(self._validate(token, wrong).status_code, 400)

        response = self._validate(token, wrong)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["data"], {"accountLocked": True})
        credential = self._credential()
        self.assertTrue(credential.account_locked)
        self.assertEqual(self.notifier.calls, [(credential.user_id, "Inactive")])

        response = self._validate(token, pyotp.TOTP(self.secret).now())
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["data"], {"accountLocked": True})

    def test_valid_code_clears_failed_attempts(self) -> None:
        token = self.login("lena").json()["data"]["token"]
        wrong = pyotp.TOTP(pyotp.random_base32()).now()
        self._validate(token, wrong)
        self._validate(token, wrong)
        self.assertEqual(self._credential().failed_login_attempts, 2)

        response = self._validate(token, pyotp.TOTP(self.secret).now())
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(self._credential().failed_login_attempts, 0)

    def test_non_numeric_code_rejected_by_schema(self) -> None:
        token = self.login("lena").json()["data"]["token"]
        response = self.client.post(f"{API}/mfa/validate", json={"token": "abcdef"}, headers=self.bearer(token))
        self.assertEqual(response.status_code, 400)
        self.assertIn("errors", response.json()["data"])

    def test_challenge_token_is_not_an_access_token(self) -> None:
        token = self.login("lena").json()["data"]["token"]
        self.assertEqual(self.client.get(f"{API}/auth/me", headers=self.bearer(token)).status_code, 401)


if __name__ == "__main__":
    unittest.main()
