"""CSRF token manager."""

import secrets
from datetime import datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.orm import Session

from nivaro.config import get_settings
from nivaro.database import utcnow
from nivaro.models.csrf_token import CSRFToken

CSRF_HEADER_NAME = "X-CSRF-Token"


class CSRFTokenManager:
    """Issues and checks per-user anti-forgery tokens."""

    def __init__(self, ttl: timedelta | None = None) -> None:
        self.ttl = ttl or timedelta(minutes=get_settings().CSRF_TOKEN_TTL_MINUTES)

    def issue_or_reuse(self, db: Session, user_id: str, now: datetime | None = None) -> tuple[str, datetime]:
        """Return the user's current token, or mint a new one. Returns (token, expires_at)."""
        now = now or utcnow()
        existing = (
            db.query(CSRFToken)
            .filter(CSRFToken.user_id == user_id, CSRFToken.expires_at > now)
            .order_by(CSRFToken.expires_at.desc())
            .first()
        )
        if existing:
            return existing.token, existing.expires_at

        db.execute(
            delete(CSRFToken)
            .where(CSRFToken.user_id == user_id, CSRFToken.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        record = CSRFToken(
            user_id=user_id,
            token=secrets.token_urlsafe(32),
            expires_at=now + self.ttl,
            created_at=now,
        )
        db.add(record)
        db.commit()
        return record.token, record.expires_at

    def validate(self, db: Session, user_id: str, token: str | None, now: datetime | None = None) -> bool:
        """True only for an unexpired token issued to this exact user."""
        if not token or not user_id:
            return False
        now = now or utcnow()
        match = (
            db.query(CSRFToken.id)
            .filter(
                CSRFToken.user_id == user_id,
                CSRFToken.token == token,
                CSRFToken.expires_at > now,
            )
            .first()
        )
        return match is not None


_csrf_manager: CSRFTokenManager | None = None


def get_csrf_manager() -> CSRFTokenManager:
    """Get singleton CSRF token manager instance."""
    global _csrf_manager
    if _csrf_manager is None:
        _csrf_manager = CSRFTokenManager()
    return _csrf_manager
