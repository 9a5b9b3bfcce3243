"""Authentication dependencies for FastAPI routes.

``resolve_identity`` and ``verify_request_origin`` are also the entry points
for other handlers that need to know who is calling and whether a mutating
request carries a valid CSRF token.
"""

from dataclasses import dataclass

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session

from nivaro.config import get_settings
from nivaro.database import get_db
from nivaro.errors import CSRFValidationFailed, Unauthorized
from nivaro.services.csrf import CSRF_HEADER_NAME, get_csrf_manager
from nivaro.services.jwt import get_jwt_service
from nivaro.services.sessions import get_session_registry

AUTH_COOKIE_NAME = "auth_token"


@dataclass
class CurrentUser:
    """Authenticated user context."""

    user_id: str
    email: str
    token: str
    session_id: str


def extract_token(request: Request) -> str | None:
    """Bearer header first, then the auth cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(AUTH_COOKIE_NAME) or None


def authenticate_request(request: Request, db: Session) -> CurrentUser:
    """Resolve the caller from a verified token backed by a live session. Raises 401."""
    token = extract_token(request)
    if not token:
        raise Unauthorized("Not authenticated")

    claims = get_jwt_service().verify(token)
    if not claims:
        raise Unauthorized("Invalid or expired token")

    session = get_session_registry().get_active(db, token)
    if not session or session.user_id != claims.sub:
        raise Unauthorized("Session has been revoked or expired")

    return CurrentUser(user_id=claims.sub, email=claims.email, token=token, session_id=session.id)


def resolve_identity(request: Request, db: Session) -> str:
    """Return the calling user's id. Raises Unauthorized."""
    return authenticate_request(request, db).user_id


def verify_request_origin(request: Request, db: Session, user_id: str) -> bool:
    """Check the X-CSRF-Token header against the user's stored tokens."""
    return get_csrf_manager().validate(db, user_id, request.headers.get(CSRF_HEADER_NAME))


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> CurrentUser:
    """Extract and validate user from Bearer token or cookie. Raises 401 if invalid."""
    return authenticate_request(request, db)


def get_optional_token(request: Request) -> str | None:
    return extract_token(request)


def require_csrf(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CurrentUser:
    """Authenticated user whose request also carries a valid CSRF token. Raises 403."""
    if not verify_request_origin(request, db, user.user_id):
        raise CSRFValidationFailed()
    return user


def set_auth_cookie(response: Response, token: str, max_age: int) -> None:
    """Set the authentication cookie."""
    settings = get_settings()
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite=settings.COOKIE_SAMESITE,
        secure=settings.COOKIE_SECURE,
        domain=settings.COOKIE_DOMAIN,
        path="/",
        max_age=max_age,
    )


def clear_auth_cookie(response: Response) -> None:
    """Clear the authentication cookie."""
    settings = get_settings()
    response.delete_cookie(
        key=AUTH_COOKIE_NAME,
        path="/",
        domain=settings.COOKIE_DOMAIN,
        secure=settings.COOKIE_SECURE,
        httponly=True,
        samesite=settings.COOKIE_SAMESITE,
    )
