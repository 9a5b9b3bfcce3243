"""Credential store: user records, password checks and lockout counters."""

import logging
from datetime import datetime

from sqlalchemy import DateTime, case, literal, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from nivaro.database import utcnow
from nivaro.errors import Conflict
from nivaro.models.user import User
from nivaro.services.lockout import LockoutPolicy, get_lockout_policy
from nivaro.services.password import PasswordHasher, get_password_hasher

logger = logging.getLogger("nivaro")


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:
    """Owns user rows and every credential-affecting mutation on them."""

    def __init__(self, hasher: PasswordHasher | None = None, policy: LockoutPolicy | None = None) -> None:
        self.hasher = hasher or get_password_hasher()
        self.policy = policy or get_lockout_policy()

    def find_by_email(self, db: Session, email: str) -> User | None:
        return db.query(User).filter(User.email == normalize_email(email)).first()

    def find_by_id(self, db: Session, user_id: str) -> User | None:
        return db.get(User, user_id)

    def email_taken(self, db: Session, email: str) -> bool:
        return self.find_by_email(db, email) is not None

    def create(self, db: Session, email: str, name: str, password: str) -> User:
        """Register a password account. Raises Conflict if the email exists."""
        if self.email_taken(db, email):
            raise Conflict("User with this email already exists")

        user = User(
            email=normalize_email(email),
            password_hash=self.hasher.hash(password),
            name=name.strip(),
            email_verified=False,
            is_active=True,
            failed_login_attempts=0,
        )
        return self._insert(db, user)

    def create_social(self, db: Session, email: str, name: str, avatar: str | None) -> User:
        """Register an account from a social identity: no password, pre-verified."""
        user = User(
            email=normalize_email(email),
            password_hash=None,
            name=name.strip(),
            avatar=avatar,
            email_verified=True,
            is_active=True,
            failed_login_attempts=0,
        )
        return self._insert(db, user)

    def _insert(self, db: Session, user: User) -> User:
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Lost a signup race on the unique email index.
            db.rollback()
            raise Conflict("User with this email already exists") from None
        db.refresh(user)
        return user

    def verify_password(self, user: User, candidate: str) -> bool:
        """Check a candidate password. Accounts without a password never match."""
        if not user.password_hash:
            return False
        return self.hasher.verify(candidate, user.password_hash)

    def update_password(self, db: Session, user_id: str, new_password: str) -> None:
        """Rehash and store a new password.

        Does not touch sessions; callers revoke them as their flow requires.
        """
        password_hash = self.hasher.hash(new_password)
        db.execute(
            update(User)
            .where(User.id == user_id)
            .values(password_hash=password_hash, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        db.commit()

    def record_login_success(self, db: Session, user_id: str, now: datetime | None = None) -> None:
        """Reset the failure counter, clear any lock and stamp last_login."""
        now = now or utcnow()
        db.execute(
            update(User)
            .where(User.id == user_id)
            .values(failed_login_attempts=0, locked_until=None, last_login=now)
            .execution_options(synchronize_session="fetch")
        )
        db.commit()

    def record_login_failure(self, db: Session, email: str, now: datetime | None = None) -> User | None:
        """Count a failed login and lock the account when the threshold is reached.

        The increment and the lock are one UPDATE evaluated against the stored
        counter, so concurrent failures cannot overwrite each other.
        """
        user = self.find_by_email(db, email)
        if not user:
            return None

        now = now or utcnow()
        incremented = User.failed_login_attempts + 1
        db.execute(
            update(User)
            .where(User.id == user.id)
            .values(
                failed_login_attempts=incremented,
                locked_until=case(
                    (incremented >= self.policy.max_attempts, literal(self.policy.lock_deadline(now), DateTime)),
                    else_=User.locked_until,
                ),
            )
            .execution_options(synchronize_session="fetch")
        )
        db.commit()
        db.refresh(user)

        if user.locked_until and user.locked_until > now:
            logger.warning("Account %s locked until %s", user.id, user.locked_until.isoformat())
        return user

    def mark_email_verified(self, db: Session, user: User) -> None:
        user.email_verified = True
        db.commit()

    def update_profile(
        self,
        db: Session,
        user: User,
        name: str | None = None,
        avatar: str | None = None,
        email: str | None = None,
    ) -> bool:
        """Apply profile changes. Returns True if the email changed.

        A new email is stored unverified. Raises Conflict if another account
        already uses it.
        """
        email_changed = False
        if email is not None and normalize_email(email) != user.email:
            if self.email_taken(db, email):
                raise Conflict("Email is already taken")
            user.email = normalize_email(email)
            user.email_verified = False
            email_changed = True
        if name is not None:
            user.name = name.strip()
        if avatar is not None:
            user.avatar = avatar or None

        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise Conflict("Email is already taken") from None
        db.refresh(user)
        return email_changed

    def deactivate(self, db: Session, user: User) -> None:
        user.is_active = False
        db.commit()


_credential_store: CredentialStore | None = None


def get_credential_store() -> CredentialStore:
    """Get singleton credential store instance."""
    global _credential_store
    if _credential_store is None:
        _credential_store = CredentialStore()
    return _credential_store
