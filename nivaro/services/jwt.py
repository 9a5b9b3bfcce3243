"""JWT Token Service."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from nivaro.config import ConfigurationError, get_settings
from nivaro.database import utcnow

REQUIRED_CLAIMS = ("sub", "email", "iat", "exp", "jti")


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a bearer token."""

    sub: str
    email: str
    issued_at: datetime
    expires_at: datetime
    jti: str


def _to_timestamp(value: datetime) -> int:
    return int(value.replace(tzinfo=timezone.utc).timestamp())


def _from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)


class JWTService:
    """Handles JWT token creation and validation."""

    def __init__(self) -> None:
        settings = get_settings()
        if not settings.JWT_SECRET_KEY:
            raise ConfigurationError("JWT_SECRET_KEY is not set")
        self.secret_key = settings.JWT_SECRET_KEY
        self.algorithm = settings.JWT_ALGORITHM
        self.lifetime = timedelta(hours=settings.JWT_EXPIRE_HOURS)

    def issue(self, user_id: str, email: str, now: datetime | None = None) -> tuple[str, datetime]:
        """Create a signed token for the given user. Returns (token, expires_at)."""
        issued_at = (now or utcnow()).replace(microsecond=0)
        expires_at = issued_at + self.lifetime
        payload = {
            "sub": user_id,
            "email": email,
            "iat": _to_timestamp(issued_at),
            "exp": _to_timestamp(expires_at),
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm), expires_at

    def verify(self, token: str) -> TokenClaims | None:
        """Decode and validate a token. Returns None if anything is wrong with it."""
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require_exp": True, "require_iat": True, "require_sub": True},
            )
        except JWTError:
            return None

        if any(not payload.get(claim) for claim in REQUIRED_CLAIMS):
            return None
        try:
            return TokenClaims(
                sub=str(payload["sub"]),
                email=str(payload["email"]),
                issued_at=_from_timestamp(int(payload["iat"])),
                expires_at=_from_timestamp(int(payload["exp"])),
                jti=str(payload["jti"]),
            )
        except (TypeError, ValueError, OverflowError):
            return None


_jwt_service: JWTService | None = None


def get_jwt_service() -> JWTService:
    """Get singleton JWT service instance."""
    global _jwt_service
    if _jwt_service is None:
        _jwt_service = JWTService()
    return _jwt_service
