"""Login session model."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String

from nivaro.database import Base, utcnow
from nivaro.models.user import new_id


class UserSession(Base):
    """A bearer token issued at login, tracked so it can be listed and revoked."""

    __tablename__ = "user_session"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    token = Column(String(1024), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_accessed = Column(DateTime, nullable=False, default=utcnow)
    user_agent = Column(String(512), nullable=True)
    ip_address = Column(String(64), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
