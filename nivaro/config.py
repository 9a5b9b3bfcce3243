"""Configuration settings for Nivaro auth."""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

MIN_SECRET_LENGTH = 32


class ConfigurationError(RuntimeError):
    """Raised at startup when required settings are missing or invalid."""


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self) -> None:
        # Database
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./nivaro.db")

        # JWT (no fallback secret: validate() rejects an empty key)
        self.JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "")
        self.JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS: int = int(os.getenv("JWT_EXPIRE_HOURS", "24"))

        # Password hashing
        self.BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

        # Lockout
        self.LOCKOUT_MAX_ATTEMPTS: int = int(os.getenv("LOCKOUT_MAX_ATTEMPTS", "5"))
        self.LOCKOUT_MINUTES: int = int(os.getenv("LOCKOUT_MINUTES", "15"))

        # Token lifetimes
        self.CSRF_TOKEN_TTL_MINUTES: int = int(os.getenv("CSRF_TOKEN_TTL_MINUTES", "60"))
        self.EMAIL_VERIFICATION_TTL_HOURS: int = int(os.getenv("EMAIL_VERIFICATION_TTL_HOURS", "24"))
        self.PASSWORD_RESET_TTL_MINUTES: int = int(os.getenv("PASSWORD_RESET_TTL_MINUTES", "60"))

        # Links in outgoing emails
        self.FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")

        # Application
        self.APP_ENV: str = os.getenv("APP_ENV", "development")
        self.DEBUG: bool = _env_bool("DEBUG", False)

        # Auth cookie
        self.COOKIE_SECURE: bool = _env_bool("COOKIE_SECURE", self.APP_ENV == "production")
        self.COOKIE_SAMESITE: str = os.getenv("COOKIE_SAMESITE", "lax").lower()
        self.COOKIE_DOMAIN: str | None = os.getenv("COOKIE_DOMAIN") or None

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    def validate(self) -> list[str]:
        """Validate settings and return list of errors."""
        errors = []
        if not self.JWT_SECRET_KEY:
            errors.append("JWT_SECRET_KEY is not set")
        elif len(self.JWT_SECRET_KEY) < MIN_SECRET_LENGTH:
            errors.append(f"JWT_SECRET_KEY must be at least {MIN_SECRET_LENGTH} characters")
        if self.JWT_EXPIRE_HOURS <= 0:
            errors.append("JWT_EXPIRE_HOURS must be positive")
        if not 4 <= self.BCRYPT_ROUNDS <= 31:
            errors.append("BCRYPT_ROUNDS must be between 4 and 31")
        if self.LOCKOUT_MAX_ATTEMPTS < 1:
            errors.append("LOCKOUT_MAX_ATTEMPTS must be at least 1")
        if self.COOKIE_SAMESITE not in ("strict", "lax", "none"):
            errors.append("COOKIE_SAMESITE must be one of strict, lax, none")
        if self.COOKIE_SAMESITE == "none" and not self.COOKIE_SECURE:
            errors.append("COOKIE_SAMESITE=none requires COOKIE_SECURE")
        return errors

    def require_valid(self) -> None:
        """Raise ConfigurationError if any setting is invalid."""
        errors = self.validate()
        if errors:
            raise ConfigurationError("Invalid configuration: " + "; ".join(errors))


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
