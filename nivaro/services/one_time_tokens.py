"""Single-use tokens for email verification and password reset."""

import hashlib
import secrets
from datetime import datetime, timedelta

from sqlalchemy import delete, or_, update
from sqlalchemy.orm import Session

from nivaro.config import get_settings
from nivaro.database import utcnow
from nivaro.models.one_time_token import OneTimeToken, TokenKind


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class OneTimeTokenIssuer:
    """Generates, consumes and expires emailed single-use tokens."""

    def __init__(self, ttls: dict[TokenKind, timedelta] | None = None) -> None:
        settings = get_settings()
        self.ttls = ttls or {
            TokenKind.EMAIL_VERIFICATION: timedelta(hours=settings.EMAIL_VERIFICATION_TTL_HOURS),
            TokenKind.PASSWORD_RESET: timedelta(minutes=settings.PASSWORD_RESET_TTL_MINUTES),
        }

    def issue(
        self,
        db: Session,
        user_id: str,
        kind: TokenKind,
        email: str | None = None,
        now: datetime | None = None,
    ) -> str:
        """Create a token and return its raw value.

        Expired and used tokens of the same kind are purged, and any token
        still outstanding is superseded, so a user holds at most one valid
        token per kind.
        """
        now = now or utcnow()
        db.execute(
            delete(OneTimeToken)
            .where(
                OneTimeToken.user_id == user_id,
                OneTimeToken.kind == kind.value,
                or_(OneTimeToken.used_at.is_not(None), OneTimeToken.expires_at <= now),
            )
            .execution_options(synchronize_session=False)
        )
        db.execute(
            update(OneTimeToken)
            .where(
                OneTimeToken.user_id == user_id,
                OneTimeToken.kind == kind.value,
                OneTimeToken.used_at.is_(None),
            )
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )

        token = secrets.token_urlsafe(32)
        db.add(
            OneTimeToken(
                user_id=user_id,
                kind=kind.value,
                token_hash=hash_token(token),
                email=email,
                expires_at=now + self.ttls[kind],
                created_at=now,
            )
        )
        db.commit()
        return token

    def consume(self, db: Session, token: str, kind: TokenKind, now: datetime | None = None) -> OneTimeToken | None:
        """Mark a token used and return its row.

        Returns None for unknown, expired and already used tokens alike. The
        check and the mark are one UPDATE, so two concurrent consumers cannot
        both succeed.
        """
        if not token:
            return None
        now = now or utcnow()
        digest = hash_token(token)
        result = db.execute(
            update(OneTimeToken)
            .where(
                OneTimeToken.token_hash == digest,
                OneTimeToken.kind == kind.value,
                OneTimeToken.used_at.is_(None),
                OneTimeToken.expires_at > now,
            )
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if result.rowcount != 1:
            return None
        return db.query(OneTimeToken).filter(OneTimeToken.token_hash == digest).first()


_one_time_token_issuer: OneTimeTokenIssuer | None = None


def get_one_time_token_issuer() -> OneTimeTokenIssuer:
    """Get singleton one-time token issuer instance."""
    global _one_time_token_issuer
    if _one_time_token_issuer is None:
        _one_time_token_issuer = OneTimeTokenIssuer()
    return _one_time_token_issuer
