"""Authentication service: the signup, login and credential recovery flows."""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from nivaro.database import utcnow
from nivaro.errors import (
    AccountLocked,
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFound,
    Unauthorized,
    ValidationError,
)
from nivaro.models.one_time_token import TokenKind
from nivaro.models.session import UserSession
from nivaro.models.user import User
from nivaro.services.credentials import CredentialStore, get_credential_store
from nivaro.services.email import EmailSender
from nivaro.services.jwt import JWTService, get_jwt_service
from nivaro.services.lockout import LockoutPolicy, get_lockout_policy
from nivaro.services.one_time_tokens import OneTimeTokenIssuer, get_one_time_token_issuer
from nivaro.services.sessions import SessionRegistry, get_session_registry
from nivaro.services.social import SocialProfile

logger = logging.getLogger("nivaro")


@dataclass
class LoginResult:
    """A freshly issued bearer token and the user it belongs to."""

    user: User
    token: str
    expires_at: datetime
    session: UserSession


class AuthService:
    """Handles registration, authentication and credential changes."""

    def __init__(
        self,
        credentials: CredentialStore | None = None,
        sessions: SessionRegistry | None = None,
        tokens: OneTimeTokenIssuer | None = None,
        policy: LockoutPolicy | None = None,
        jwt_service: JWTService | None = None,
    ) -> None:
        self.credentials = credentials or get_credential_store()
        self.sessions = sessions or get_session_registry()
        self.tokens = tokens or get_one_time_token_issuer()
        self.policy = policy or get_lockout_policy()
        self.jwt = jwt_service or get_jwt_service()

    # --- Registration ---

    def register(self, db: Session, email: str, password: str, name: str, mailer: EmailSender) -> User:
        """Create an unverified account and email a verification token."""
        user = self.credentials.create(db, email, name, password)
        token = self.tokens.issue(db, user.id, TokenKind.EMAIL_VERIFICATION, email=user.email)
        self._deliver(mailer.send_verification_email, user.email, token)
        logger.info("User %s registered", user.id)
        return user

    def verify_email(self, db: Session, token: str) -> User:
        """Consume a verification token and mark the address verified."""
        record = self.tokens.consume(db, token, TokenKind.EMAIL_VERIFICATION)
        if not record:
            raise InvalidOrExpiredToken("Invalid or expired verification token")

        user = self.credentials.find_by_id(db, record.user_id)
        # A token sent to a previous address must not verify the current one.
        if not user or not user.is_active or (record.email and record.email != user.email):
            raise InvalidOrExpiredToken("Invalid or expired verification token")

        self.credentials.mark_email_verified(db, user)
        logger.info("User %s verified email", user.id)
        return user

    # --- Login ---

    def authenticate(
        self,
        db: Session,
        email: str,
        password: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> LoginResult:
        """Check credentials and open a session.

        The lockout state is evaluated before the password is looked at, so a
        locked account never reaches the hasher.
        """
        now = utcnow()
        user = self.credentials.find_by_email(db, email)
        if not user:
            self.credentials.hasher.burn(password)
            logger.info("Login failed: unknown email")
            raise InvalidCredentials()

        state = self.policy.evaluate(user.failed_login_attempts, user.locked_until, now)
        if state.locked:
            logger.warning("Login rejected for locked account %s", user.id)
            raise AccountLocked()

        if not user.is_active or not user.password_hash:
            self.credentials.hasher.burn(password)
            logger.info("Login failed for account %s: inactive or social-only", user.id)
            raise InvalidCredentials()

        if not self.credentials.verify_password(user, password):
            self.credentials.record_login_failure(db, user.email, now)
            logger.info("Login failed for account %s: wrong password", user.id)
            raise InvalidCredentials()

        self.credentials.record_login_success(db, user.id, now)
        db.refresh(user)
        logger.info("User %s logged in", user.id)
        return self.start_session(db, user, user_agent, ip_address)

    def social_login(
        self,
        db: Session,
        profile: SocialProfile,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> LoginResult:
        """Sign in with a verified social profile, creating the account on first use."""
        user = self.credentials.find_by_email(db, profile.email)
        if not user:
            user = self.credentials.create_social(db, profile.email, profile.name, profile.avatar)
            logger.info("User %s registered via %s", user.id, profile.provider)
        elif not user.is_active:
            raise InvalidCredentials()
        else:
            state = self.policy.evaluate(user.failed_login_attempts, user.locked_until, utcnow())
            if state.locked:
                raise AccountLocked()
            if not user.email_verified:
                # The provider has just proven ownership of this address.
                self.credentials.mark_email_verified(db, user)

        self.credentials.record_login_success(db, user.id)
        db.refresh(user)
        logger.info("User %s logged in via %s", user.id, profile.provider)
        return self.start_session(db, user, user_agent, ip_address)

    def start_session(
        self,
        db: Session,
        user: User,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> LoginResult:
        token, expires_at = self.jwt.issue(user.id, user.email)
        session = self.sessions.create(db, user.id, token, expires_at, user_agent, ip_address)
        return LoginResult(user=user, token=token, expires_at=expires_at, session=session)

    def logout(self, db: Session, token: str | None) -> None:
        """Revoke the session behind a token, if any."""
        if token and self.sessions.revoke(db, token):
            logger.info("Session revoked on logout")

    # --- Password recovery and change ---

    def request_password_reset(self, db: Session, email: str, mailer: EmailSender) -> None:
        """Email a reset token if the account exists.

        Returns nothing either way; callers must answer identically.
        """
        user = self.credentials.find_by_email(db, email)
        if not user or not user.is_active:
            logger.info("Password reset requested for unknown or inactive email")
            return

        token = self.tokens.issue(db, user.id, TokenKind.PASSWORD_RESET)
        self._deliver(mailer.send_password_reset_email, user.email, token)
        logger.info("Password reset token issued for user %s", user.id)

    def reset_password(self, db: Session, token: str, new_password: str) -> User:
        """Consume a reset token, set the password and revoke every session."""
        record = self.tokens.consume(db, token, TokenKind.PASSWORD_RESET)
        if not record:
            raise InvalidOrExpiredToken("Invalid or expired reset token")

        user = self.credentials.find_by_id(db, record.user_id)
        if not user or not user.is_active:
            raise InvalidOrExpiredToken("Invalid or expired reset token")

        self.credentials.update_password(db, user.id, new_password)
        self.sessions.revoke_all(db, user.id)
        # Proving control of the mailbox also clears any lockout.
        self.credentials.record_login_success(db, user.id)
        logger.info("User %s reset password", user.id)
        return user

    def change_password(
        self,
        db: Session,
        user_id: str,
        current_token: str,
        current_password: str,
        new_password: str,
    ) -> None:
        """Change a password and sign out every other device."""
        user = self.credentials.find_by_id(db, user_id)
        if not user or not user.is_active:
            raise NotFound("User not found")

        if not self.credentials.verify_password(user, current_password):
            raise ValidationError("Current password is incorrect")
        if current_password == new_password:
            raise ValidationError("New password must differ from the current password")

        self.credentials.update_password(db, user.id, new_password)
        self.sessions.revoke_all_except(db, user.id, current_token)
        logger.info("User %s changed password", user.id)

    # --- Profile and account ---

    def get_user(self, db: Session, user_id: str) -> User:
        user = self.credentials.find_by_id(db, user_id)
        if not user or not user.is_active:
            raise NotFound("User not found")
        return user

    def update_profile(
        self,
        db: Session,
        user_id: str,
        mailer: EmailSender,
        name: str | None = None,
        avatar: str | None = None,
        email: str | None = None,
    ) -> User:
        """Update profile fields; a new email must be verified again."""
        user = self.get_user(db, user_id)
        if name is None and avatar is None and email is None:
            raise ValidationError("No valid updates provided")

        email_changed = self.credentials.update_profile(db, user, name=name, avatar=avatar, email=email)
        if email_changed:
            token = self.tokens.issue(db, user.id, TokenKind.EMAIL_VERIFICATION, email=user.email)
            self._deliver(mailer.send_verification_email, user.email, token)
            logger.info("User %s changed email; re-verification sent", user.id)
        return user

    def deactivate_account(self, db: Session, user_id: str) -> None:
        """Soft-delete: the row stays, the account can no longer sign in."""
        user = self.credentials.find_by_id(db, user_id)
        if not user:
            raise Unauthorized()
        self.credentials.deactivate(db, user)
        self.sessions.revoke_all(db, user.id)
        logger.info("User %s deactivated account", user.id)

    def _deliver(self, send, address: str, token: str) -> None:
        # Delivery problems are logged, not surfaced: the response must not
        # depend on whether an email went out.
        try:
            send(address, token)
        except Exception:
            logger.exception("Failed to send email to %s", address)


_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """Get singleton auth service instance."""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service
