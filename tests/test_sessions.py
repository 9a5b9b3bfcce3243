"""Tests for the session registry."""

from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from nivaro.database import utcnow
from nivaro.models.user import User
from nivaro.services.sessions import SessionRegistry


@pytest.fixture(name="user")
def user_fixture(db_session: Session) -> User:
    user = User(email="s@example.com", name="Sessions", password_hash=None)
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(name="registry")
def registry_fixture() -> SessionRegistry:
    return SessionRegistry()


def _open(db: Session, registry: SessionRegistry, user: User, token: str, hours: int = 1):
    return registry.create(db, user.id, token, utcnow() + timedelta(hours=hours), "agent", "127.0.0.1")


class TestSessionRegistry:
    """Tests for creating, listing and revoking sessions."""

    def test_get_active(self, db_session: Session, registry: SessionRegistry, user: User):
        """Look up a live session by token."""
        session = _open(db_session, registry, user, "tok-a")
        assert registry.get_active(db_session, "tok-a").id == session.id
        assert registry.get_active(db_session, "unknown") is None

    def test_expired_session_is_not_active(self, db_session: Session, registry: SessionRegistry, user: User):
        """An expired session is neither active nor listed."""
        _open(db_session, registry, user, "tok-a", hours=-1)
        assert registry.get_active(db_session, "tok-a") is None
        assert registry.list_active(db_session, user.id) == []

    def test_revoke(self, db_session: Session, registry: SessionRegistry, user: User):
        """Revoking twice reports the second as a no-op."""
        _open(db_session, registry, user, "tok-a")
        assert registry.revoke(db_session, "tok-a") is True
        assert registry.revoke(db_session, "tok-a") is False
        assert registry.get_active(db_session, "tok-a") is None

    def test_revoke_all(self, db_session: Session, registry: SessionRegistry, user: User):
        """Every session of the user is revoked."""
        for token in ("tok-a", "tok-b", "tok-c"):
            _open(db_session, registry, user, token)
        assert registry.revoke_all(db_session, user.id) == 3
        assert registry.list_active(db_session, user.id) == []

    def test_revoke_all_except_leaves_one(self, db_session: Session, registry: SessionRegistry, user: User):
        """Only the kept token's session stays active."""
        for token in ("tok-a", "tok-b", "tok-c"):
            _open(db_session, registry, user, token)
        assert registry.revoke_all_except(db_session, user.id, "tok-b") == 2

        remaining = registry.list_active(db_session, user.id)
        assert [s.token for s in remaining] == ["tok-b"]

    def test_revoke_all_leaves_other_users(self, db_session: Session, registry: SessionRegistry, user: User):
        """Other users' sessions are untouched."""
        other = User(email="other@example.com", name="Other")
        db_session.add(other)
        db_session.commit()
        _open(db_session, registry, user, "tok-a")
        _open(db_session, registry, other, "tok-b")

        registry.revoke_all(db_session, user.id)
        assert registry.get_active(db_session, "tok-b") is not None

    def test_user_agent_is_truncated(self, db_session: Session, registry: SessionRegistry, user: User):
        """Long user agents are cut to the column size."""
        session = registry.create(db_session, user.id, "tok-a", utcnow() + timedelta(hours=1), "x" * 2000)
        assert len(session.user_agent) == 512
