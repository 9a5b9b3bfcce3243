"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; configure before importing the app.
os.environ["JWT_SECRET_KEY"] = "test-secret-key-0123456789-abcdefghijklmnop"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

from urllib.parse import parse_qs, urlparse  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from nivaro.database import Base, get_db  # noqa: E402
from nivaro.models.csrf_token import CSRFToken  # noqa: E402, F401
from nivaro.models.one_time_token import OneTimeToken  # noqa: E402, F401
from nivaro.models.session import UserSession  # noqa: E402, F401
from nivaro.models.user import User  # noqa: E402, F401
from nivaro.services.auth import get_auth_service  # noqa: E402
from nivaro.services.email import EmailSender, get_email_sender  # noqa: E402
from nivaro.services.social import SocialProfile, get_social_verifier  # noqa: E402

TEST_PASSWORD = "Passw0rd!"


class RecordingEmailSender(EmailSender):
    """Keeps outgoing emails in memory instead of sending them."""

    def __init__(self) -> None:
        super().__init__(frontend_url="http://frontend.test")
        self.sent: list[dict] = []

    def send_email(self, address: str, subject: str, link: str) -> None:
        token = parse_qs(urlparse(link).query)["token"][0]
        self.sent.append({"address": address, "subject": subject, "link": link, "token": token})

    def last_token(self, address: str | None = None) -> str:
        matches = [m for m in self.sent if address is None or m["address"] == address]
        assert matches, "no email was sent"
        return matches[-1]["token"]


class FakeSocialVerifier:
    """Accepts access tokens registered in ``profiles``."""

    def __init__(self) -> None:
        self.profiles: dict[str, SocialProfile] = {}

    def verify(self, provider: str, access_token: str) -> SocialProfile | None:
        profile = self.profiles.get(access_token)
        if profile and profile.provider == provider:
            return profile
        return None


@pytest.fixture(name="db_session")
def db_session_fixture():
    """Create an in-memory SQLite database for tests."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    testing_session_local = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="mailer")
def mailer_fixture() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture(name="social_verifier")
def social_verifier_fixture() -> FakeSocialVerifier:
    return FakeSocialVerifier()


@pytest.fixture(name="client")
def client_fixture(db_session: Session, mailer: RecordingEmailSender, social_verifier: FakeSocialVerifier):
    """Create a test client with overridden collaborators and disabled rate limiting."""
    from main import app
    from nivaro.rate_limit import limiter

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_sender] = lambda: mailer
    app.dependency_overrides[get_social_verifier] = lambda: social_verifier
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture(name="test_user")
def test_user_fixture(db_session: Session, mailer: RecordingEmailSender):
    """Create a test user with an open session and return its details."""
    auth_service = get_auth_service()
    user = auth_service.register(db_session, "test@example.com", TEST_PASSWORD, "Test User", mailer)
    result = auth_service.authenticate(db_session, "test@example.com", TEST_PASSWORD)

    return {
        "user_id": user.id,
        "email": user.email,
        "name": user.name,
        "password": TEST_PASSWORD,
        "token": result.token,
        "headers": {"Authorization": f"Bearer {result.token}"},
    }


@pytest.fixture(name="csrf_headers")
def csrf_headers_fixture(client: TestClient, test_user: dict) -> dict:
    """Bearer plus CSRF headers for the test user."""
    response = client.get("/csrf-token", headers=test_user["headers"])
    assert response.status_code == 200
    return {**test_user["headers"], "X-CSRF-Token": response.json()["token"]}
