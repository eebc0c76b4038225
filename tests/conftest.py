"""
Academy Admin - Test Configuration

Pytest fixtures for the auth, invitation and password reset workflows.
Provides test database, client, notifier and user fixtures.
"""

import os

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key-do-not-use-in-production")
os.environ["BCRYPT_WORK_FACTOR"] = "4"
os.environ["RECLAIM_INTERVAL_MINUTES"] = "0"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

import re
from typing import Any, Dict, Generator, List, Optional
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from academy.app import create_app
from academy.auth.clock import utcnow
from academy.auth.database import get_engine, get_session_factory, init_db
from academy.auth.dependencies import AuthenticatedUser
from academy.auth.models import User
from academy.auth.roles import Role
from academy.notifications import SendResult


DEFAULT_PASSWORD = "Password123!"


class FakeNotifier:
    """In-memory notification sender that records every message."""

    def __init__(self):
        self.sent: List[Dict[str, str]] = []
        self.is_enabled = True
        self.fail = False

    @property
    def enabled(self) -> bool:
        return self.is_enabled

    def send(self, to_address: str, subject: str, body_text: str, body_html: str) -> SendResult:
        if self.fail:
            return SendResult(success=False, error="550 mailbox unavailable at mx.internal")
        self.sent.append({
            "to": to_address,
            "subject": subject,
            "text": body_text,
            "html": body_html,
        })
        return SendResult(success=True, message_id=f"<{len(self.sent)}@academy.test>")

    def status(self) -> Dict[str, Any]:
        return {
            "enabled": self.is_enabled,
            "transport": "fake",
            "host": None,
            "from_address": "noreply@academy.test",
        }

    def messages_to(self, address: str) -> List[Dict[str, str]]:
        return [m for m in self.sent if m["to"] == address]


@pytest.fixture(scope="function")
def test_engine():
    """Create a fresh in-memory database for each test."""
    engine = get_engine("sqlite:///:memory:")
    init_db(engine)

    yield engine

    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return get_session_factory(test_engine)


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(scope="function")
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture(scope="function")
def client(test_engine, session_factory, notifier) -> Generator[TestClient, None, None]:
    """Create a test client wired to the test database and fake notifier."""
    app = create_app()
    app.state.db_engine = test_engine
    app.state.db_session_factory = session_factory
    app.state.notifier = notifier

    with TestClient(app) as c:
        yield c


def make_user(
    db: Session,
    username: str,
    role: Role,
    email: Optional[str] = None,
    password: str = DEFAULT_PASSWORD,
    is_active: bool = True,
) -> User:
    now = utcnow()
    user = User(
        id=uuid4(),
        username=username,
        email=email or f"{username}@academy.test",
        name=username.replace("_", " ").title(),
        password_hash="",
        role=role,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )
    user.set_password(password)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def super_admin(db_session) -> User:
    return make_user(db_session, "root", Role.SUPER_ADMIN)


@pytest.fixture(scope="function")
def admin(db_session) -> User:
    return make_user(db_session, "admin", Role.ADMIN)


@pytest.fixture(scope="function")
def second_admin(db_session) -> User:
    return make_user(db_session, "admin_two", Role.ADMIN)


@pytest.fixture(scope="function")
def moderator(db_session) -> User:
    return make_user(db_session, "moderator", Role.MODERATOR)


@pytest.fixture(scope="function")
def teacher(db_session) -> User:
    return make_user(db_session, "teacher", Role.TEACHER)


@pytest.fixture(scope="function")
def student(db_session) -> User:
    return make_user(db_session, "student", Role.STUDENT)


@pytest.fixture(scope="function")
def inactive_admin(db_session) -> User:
    return make_user(db_session, "dormant", Role.ADMIN, is_active=False)


def identity(user: User) -> AuthenticatedUser:
    """Session-bound identity for calling services directly."""
    return AuthenticatedUser(
        user_id=user.id,
        username=user.username,
        name=user.name,
        email=user.email,
        role=user.role,
        is_active=user.is_active,
        session_id=uuid4(),
        token_id="test",
    )


def signin(client: TestClient, username: str, password: str = DEFAULT_PASSWORD) -> Dict[str, Any]:
    """Sign in and return the response body."""
    response = client.post(
        "/auth/signin/credentials",
        json={"username": username, "password": password},
    )
    assert response.status_code == 200, response.text
    return response.json()


def auth_headers(access_token: str, session_id: str) -> Dict[str, str]:
    """Create authorization headers for authenticated requests."""
    return {
        "Authorization": f"Bearer {access_token}",
        "X-Session-ID": session_id,
    }


def signed_in_headers(client: TestClient, username: str) -> Dict[str, str]:
    body = signin(client, username)
    return auth_headers(body["access_token"], body["session_id"])


def extract_token(text: str, marker: str) -> str:
    """Pull a 64-hex token following ``marker`` out of an email body."""
    match = re.search(re.escape(marker) + r"([0-9a-f]{64})", text)
    assert match, f"no token after {marker!r}"
    return match.group(1)
