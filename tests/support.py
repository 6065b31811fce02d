"""
Shared fixtures: an in-memory SQLite database per test, seed helpers and a
TestClient wired to it through dependency overrides.

StaticPool keeps one connection so the request thread and the test see the
same in-memory database. Seed data is committed before any request is made.
"""

import unittest

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_email_sender, get_hrm_notifier
from app.core.database import get_db
from app.core.security import hash_password
from app.main import app
from app.models import Base, Credential, Menu, Role, RoleMenuPermission, UserProfile
from app.services.hrm_client import HrmServiceError
from app.services.notifications import EmailMessage, EmailSender

ADMIN_MENU_KEYS = ("users", "roles", "menus", "permissions", "security-settings")
STRONG_PASSWORD = "Sup3r!Secret#Pass"
API = "/api/v1"


class RecordingMailer(EmailSender):
    """Keeps sent messages instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []

    def send(self, message: EmailMessage) -> None:
        self.sent.append(message)


class RecordingNotifier:
    """Stands in for HrmNotifier; optionally fails like an unreachable service."""

    def __init__(self, fail: bool = False) -> None:
        self.calls: list[tuple[int, str]] = []
        self.fail = fail

    def update_employee_status(self, user_id: int, status: str) -> None:
        self.calls.append((user_id, status))
        if self.fail:
            raise HrmServiceError("HRM service is unreachable.")


def make_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


def seed_menus(db: Session, keys=ADMIN_MENU_KEYS) -> dict[str, Menu]:
    """Root menus with contiguous order_index, one per key."""
    menus = {}
    for index, key in enumerate(keys):
        menu = Menu(menu_key=key, menu_name=key.replace("-", " ").title(), route=f"/{key}", order_index=index)
        db.add(menu)
        menus[key] = menu
    db.flush()
    return menus


def seed_role(db: Session, name: str, menus=(), *, session_binding_required: bool = False) -> Role:
    role = Role(name=name, session_binding_required=session_binding_required)
    db.add(role)
    db.flush()
    for menu in menus:
        db.add(RoleMenuPermission(role_id=role.id, menu_id=menu.id))
    db.flush()
    return role


def seed_account(
    db: Session,
    username: str,
    password: str = STRONG_PASSWORD,
    *,
    role: Role | None = None,
    email: str | None = None,
    mfa_enabled: bool = False,
    mfa_secret: str | None = None,
    password_reset_required: bool = False,
) -> Credential:
    email = email or f"{username}@acme-hr.com"
    profile = UserProfile(
        first_name=username.title(),
        email=email,
        role_id=role.id if role else None,
        status="pending" if password_reset_required else "active",
    )
    db.add(profile)
    db.flush()
    credential = Credential(
        username=username,
        email=email,
        password_hash=hash_password(password),
        user_id=profile.id,
        role_id=role.id if role else None,
        mfa_enabled=mfa_enabled,
        mfa_secret=mfa_secret,
        password_reset_required=password_reset_required,
    )
    db.add(credential)
    db.flush()
    return credential


class DatabaseTestCase(unittest.TestCase):
    """Fresh schema per test; self.db is a session for service-level tests."""

    def setUp(self) -> None:
        self.engine = make_engine()
        self.Session = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        self.db = self.Session()

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()


class ApiTestCase(unittest.TestCase):
    """
    TestClient against the real app with get_db, the mailer and the HRM
    notifier overridden. Seed with `with self.Session() as db:` and commit.
    """

    def setUp(self) -> None:
        self.engine = make_engine()
        self.Session = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        self.mailer = RecordingMailer()
        self.notifier = RecordingNotifier()

        def override_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_db
        app.dependency_overrides[get_email_sender] = lambda: self.mailer
        app.dependency_overrides[get_hrm_notifier] = lambda: self.notifier
        self.client = TestClient(app, raise_server_exceptions=False)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.engine.dispose()

    def seed_admin(self, username: str = "admin") -> dict:
        """Admin role granted every administration menu, plus one account in it. Returns their ids."""
        with self.Session() as db:
            menus = seed_menus(db)
            role = seed_role(db, "Admin", menus.values())
            seed_account(db, username, role=role)
            ids = {"role_id": role.id, "menu_ids": {key: m.id for key, m in menus.items()}}
            db.commit()
        return ids

    def admin_headers(self, username: str = "admin") -> dict[str, str]:
        return self.bearer(self.login_tokens(username)["token"])

    def login(self, username: str, password: str = STRONG_PASSWORD):
        return self.client.post(f"{API}/auth", json={"username": username, "password": password})

    def login_tokens(self, username: str, password: str = STRONG_PASSWORD) -> dict:
        response = self.login(username, password)
        self.assertEqual(response.status_code, 200, response.text)
        body = response.json()
        self.assertEqual(body["status"], "success", body)
        return body["data"]

    @staticmethod
    def bearer(token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}
