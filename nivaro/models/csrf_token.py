"""CSRF token model."""

from sqlalchemy import Column, DateTime, ForeignKey, String

from nivaro.database import Base, utcnow
from nivaro.models.user import new_id


class CSRFToken(Base):
    """Per-user anti-forgery token, independent of the bearer token."""

    __tablename__ = "csrf_token"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(128), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
