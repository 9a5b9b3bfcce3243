"""Single-use token model for email verification and password reset."""

import enum

from sqlalchemy import Column, DateTime, ForeignKey, String

from nivaro.database import Base, utcnow
from nivaro.models.user import new_id


class TokenKind(str, enum.Enum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class OneTimeToken(Base):
    """Emailed token; only its SHA-256 digest is stored."""

    __tablename__ = "one_time_token"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(32), nullable=False)
    token_hash = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(256), nullable=True)  # target address, verification only
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    used_at = Column(DateTime, nullable=True)
