"""Session registry for issued bearer tokens."""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from nivaro.database import utcnow
from nivaro.models.session import UserSession

logger = logging.getLogger("nivaro")


class SessionRegistry:
    """Tracks login sessions so they can be listed and revoked."""

    def create(
        self,
        db: Session,
        user_id: str,
        token: str,
        expires_at: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> UserSession:
        now = utcnow()
        session = UserSession(
            user_id=user_id,
            token=token,
            expires_at=expires_at,
            created_at=now,
            last_accessed=now,
            user_agent=user_agent[:512] if user_agent else None,
            ip_address=ip_address,
            is_active=True,
        )
        db.add(session)
        db.commit()
        db.refresh(session)
        return session

    def get_active(self, db: Session, token: str, now: datetime | None = None) -> UserSession | None:
        """Return the live session for a token, or None if revoked, expired or unknown."""
        now = now or utcnow()
        return (
            db.query(UserSession)
            .filter(
                UserSession.token == token,
                UserSession.is_active.is_(True),
                UserSession.expires_at > now,
            )
            .first()
        )

    def list_active(self, db: Session, user_id: str, now: datetime | None = None) -> list[UserSession]:
        """Live sessions for a user, newest first."""
        now = now or utcnow()
        return (
            db.query(UserSession)
            .filter(
                UserSession.user_id == user_id,
                UserSession.is_active.is_(True),
                UserSession.expires_at > now,
            )
            .order_by(UserSession.created_at.desc())
            .all()
        )

    def revoke(self, db: Session, token: str) -> bool:
        """Deactivate one session. Returns True if a live row was revoked."""
        result = db.execute(
            update(UserSession)
            .where(UserSession.token == token, UserSession.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        db.commit()
        return result.rowcount > 0

    def revoke_all(self, db: Session, user_id: str) -> int:
        """Deactivate every session of a user. Returns the number revoked."""
        result = db.execute(
            update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        db.commit()
        logger.info("Revoked %d session(s) for user %s", result.rowcount, user_id)
        return result.rowcount

    def revoke_all_except(self, db: Session, user_id: str, keep_token: str) -> int:
        """Deactivate every session of a user except the one holding ``keep_token``."""
        result = db.execute(
            update(UserSession)
            .where(
                UserSession.user_id == user_id,
                UserSession.token != keep_token,
                UserSession.is_active.is_(True),
            )
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        db.commit()
        logger.info("Revoked %d other session(s) for user %s", result.rowcount, user_id)
        return result.rowcount


_session_registry: SessionRegistry | None = None


def get_session_registry() -> SessionRegistry:
    """Get singleton session registry instance."""
    global _session_registry
    if _session_registry is None:
        _session_registry = SessionRegistry()
    return _session_registry
