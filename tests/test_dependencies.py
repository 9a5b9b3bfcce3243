"""Tests for request identity and CSRF origin checks."""

import pytest
from sqlalchemy.orm import Session
from starlette.requests import Request

from nivaro.dependencies import resolve_identity, verify_request_origin
from nivaro.errors import Unauthorized
from nivaro.services.auth import get_auth_service
from nivaro.services.csrf import get_csrf_manager
from nivaro.services.sessions import get_session_registry


def _request(headers: dict | None = None, cookies: dict | None = None) -> Request:
    raw = [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()]
    if cookies:
        raw.append((b"cookie", "; ".join(f"{key}={value}" for key, value in cookies.items()).encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "query_string": b"", "headers": raw})


class TestResolveIdentity:
    """Tests for resolving the calling user from a request."""

    def test_bearer_header(self, db_session: Session, test_user: dict):
        """A valid bearer token resolves to its user id."""
        request = _request(headers=test_user["headers"])
        assert resolve_identity(request, db_session) == test_user["user_id"]

    def test_cookie_only(self, db_session: Session, test_user: dict):
        """The auth cookie works when no header is sent."""
        request = _request(cookies={"auth_token": test_user["token"]})
        assert resolve_identity(request, db_session) == test_user["user_id"]

    def test_revoked_session(self, db_session: Session, test_user: dict):
        """A token whose session was revoked is unauthorized."""
        get_session_registry().revoke(db_session, test_user["token"])
        with pytest.raises(Unauthorized):
            resolve_identity(_request(headers=test_user["headers"]), db_session)

    def test_no_token(self, db_session: Session):
        """A request without credentials is unauthorized."""
        with pytest.raises(Unauthorized):
            resolve_identity(_request(), db_session)

    def test_malformed_authorization_header(self, db_session: Session, test_user: dict):
        """A non-bearer header falls back to the cookie."""
        request = _request(
            headers={"Authorization": f"Basic {test_user['token']}"},
            cookies={"auth_token": test_user["token"]},
        )
        assert resolve_identity(request, db_session) == test_user["user_id"]


class TestVerifyRequestOrigin:
    """Tests for the CSRF header check."""

    def test_own_token(self, db_session: Session, test_user: dict):
        """The user's own unexpired token passes."""
        token, _ = get_csrf_manager().issue_or_reuse(db_session, test_user["user_id"])
        request = _request(headers={"X-CSRF-Token": token})
        assert verify_request_origin(request, db_session, test_user["user_id"]) is True

    def test_foreign_users_token(self, db_session: Session, test_user: dict, mailer):
        """A token issued to another user is rejected."""
        other = get_auth_service().register(db_session, "other@example.com", "Passw0rd!", "Other", mailer)
        token, _ = get_csrf_manager().issue_or_reuse(db_session, other.id)
        request = _request(headers={"X-CSRF-Token": token})
        assert verify_request_origin(request, db_session, test_user["user_id"]) is False

    def test_missing_header(self, db_session: Session, test_user: dict):
        """No header means no match."""
        assert verify_request_origin(_request(), db_session, test_user["user_id"]) is False
