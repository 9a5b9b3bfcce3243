"""User credential model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from nivaro.database import Base, utcnow


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Platform user and the credential state used to authenticate them."""

    __tablename__ = "user"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(256), unique=True, nullable=False, index=True)  # stored lower-cased
    password_hash = Column(String(256), nullable=True)  # NULL for social-only accounts
    name = Column(String(256), nullable=False)
    avatar = Column(String(1024), nullable=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime, nullable=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
