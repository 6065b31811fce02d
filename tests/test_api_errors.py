"""Tests for the response envelope produced by the error handlers, the health endpoint and the server entry point."""

import unittest
from unittest.mock import patch

from app.api.deps import get_email_sender
from app.core.config import settings
from app.main import app, serve
from tests.support import API, ApiTestCase, seed_account


class TestErrorEnvelope(ApiTestCase):
    def test_unknown_route(self) -> None:
        response = self.client.get(f"{API}/does-not-exist")
        self.assertEqual(response.status_code, 404)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["statusCode"], 404)
        self.assertIn("timestamp", body)

    def test_request_validation(self) -> None:
        response = self.client.post(f"{API}/auth", json={"password": "x"})
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["message"], "Invalid request.")
        self.assertIn("username", [e["field"] for e in body["data"]["errors"]])

    def test_overlong_username_rejected(self) -> None:
        response = self.client.post(f"{API}/auth", json={"username": "u" * 256, "password": "x"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("username", [e["field"] for e in response.json()["data"]["errors"]])

    def test_unexpected_failure_is_generic_500(self) -> None:
        with self.Session() as db:
            seed_account(db, "xena")
            db.commit()

        def broken_sender():
            raise RuntimeError("smtp credentials leaked here")

        app.dependency_overrides[get_email_sender] = broken_sender
        with self.assertLogs("app.api.errors", level="ERROR"):
            response = self.client.post(f"{API}/auth/forgot-password", json={"email": "xena@acme-hr.com"})
        self.assertEqual(response.status_code, 500)
        body = response.json()
        self.assertEqual(body["message"], "Internal server error.")
        self.assertNotIn("smtp", response.text)

    def test_success_envelope(self) -> None:
        with self.Session() as db:
            seed_account(db, "yuri")
            db.commit()
        token = self.login_tokens("yuri")["token"]
        body = self.client.put(f"{API}/auth/logout", headers=self.bearer(token)).json()
        self.assertTrue(body["success"])
        self.assertEqual(body["statusCode"], 200)
        self.assertEqual(body["message"], "Logged out successfully.")


class TestHealth(ApiTestCase):
    def test_health(self) -> None:
        response = self.client.get(f"{API}/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json(),
            {"status": "ok", "environment": "dev", "database": "connected", "hrmService": "disabled"},
        )


class TestServe(unittest.TestCase):
    def test_runs_app_with_configured_host_and_port(self) -> None:
        with patch("app.main.uvicorn.run") as run:
            serve()
        run.assert_called_once()
        args, kwargs = run.call_args
        self.assertEqual(args, ("app.main:app",))
        self.assertEqual(kwargs["host"], settings.HOST)
        self.assertEqual(kwargs["port"], settings.PORT)


if __name__ == "__main__":
    unittest.main()
