"""Auth error taxonomy.

Each error is an ``HTTPException`` so services can raise it directly and the
application's HTTP exception handler renders it as ``{"detail": ...}``.
"""

from fastapi import HTTPException


class AuthError(HTTPException):
    """Base class carrying a default status code and message."""

    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None) -> None:
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail, headers=headers)


class ValidationError(AuthError):
    status_code = 400
    default_detail = "Invalid request"


class InvalidOrExpiredToken(ValidationError):
    """Expired, already used, and unknown tokens are indistinguishable."""

    default_detail = "Invalid or expired token"


class Unauthorized(AuthError):
    status_code = 401
    default_detail = "Not authenticated"


class InvalidCredentials(Unauthorized):
    """Unknown email, wrong password and inactive account all look the same."""

    default_detail = "Invalid email or password"


class Forbidden(AuthError):
    status_code = 403
    default_detail = "Forbidden"


class CSRFValidationFailed(Forbidden):
    default_detail = "CSRF token validation failed"


class NotFound(AuthError):
    status_code = 404
    default_detail = "Not found"


class Conflict(AuthError):
    status_code = 409
    default_detail = "Resource already exists"


class AccountLocked(AuthError):
    status_code = 423
    default_detail = "Account is locked due to too many failed login attempts"


class RateLimited(AuthError):
    status_code = 429
    default_detail = "Rate limit exceeded. Try again later."


class InternalError(AuthError):
    status_code = 500
    default_detail = "Internal server error"
