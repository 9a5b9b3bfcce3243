"""Password hashing service."""

import logging

import bcrypt

from nivaro.config import get_settings
from nivaro.errors import InternalError

logger = logging.getLogger("nivaro")

MAX_PASSWORD_BYTES = 72  # bcrypt input limit


class PasswordHasher:
    """bcrypt with a fixed work factor."""

    def __init__(self, rounds: int | None = None) -> None:
        self.rounds = rounds if rounds is not None else get_settings().BCRYPT_ROUNDS
        self._dummy_hash: bytes | None = None

    def hash(self, plaintext: str) -> str:
        """Hash a password for storage."""
        try:
            return bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")
        except ValueError as e:
            logger.error("Password hashing failed: %s", e)
            raise InternalError("Failed to process password") from None

    def verify(self, plaintext: str, password_hash: str) -> bool:
        """Check a password against a stored hash.

        A candidate longer than bcrypt accepts can never have been stored, so
        it is a mismatch. A hash bcrypt cannot parse raises InternalError
        rather than counting as either a match or a mismatch.
        """
        candidate = plaintext.encode("utf-8")
        if len(candidate) > MAX_PASSWORD_BYTES:
            self.burn(plaintext)
            return False
        try:
            return bcrypt.checkpw(candidate, password_hash.encode("utf-8"))
        except ValueError as e:
            logger.error("Password verification failed: %s", e)
            raise InternalError("Failed to verify password") from None

    def burn(self, plaintext: str) -> None:
        """Spend one verification's worth of work without a real hash.

        Used when the account does not exist so the response time does not
        reveal it.
        """
        if self._dummy_hash is None:
            self._dummy_hash = bcrypt.hashpw(b"nivaro-dummy-password", bcrypt.gensalt(rounds=self.rounds))
        bcrypt.checkpw(plaintext.encode("utf-8")[:MAX_PASSWORD_BYTES], self._dummy_hash)


_password_hasher: PasswordHasher | None = None


def get_password_hasher() -> PasswordHasher:
    """Get singleton password hasher instance."""
    global _password_hasher
    if _password_hasher is None:
        _password_hasher = PasswordHasher()
    return _password_hasher
