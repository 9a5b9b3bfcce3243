"""Authentication API endpoints."""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from nivaro.database import get_db
from nivaro.dependencies import (
    CurrentUser,
    clear_auth_cookie,
    get_current_user,
    get_optional_token,
    require_csrf,
    set_auth_cookie,
)
from nivaro.errors import Unauthorized
from nivaro.rate_limit import limiter
from nivaro.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ResetPasswordRequest,
    SessionListResponse,
    SessionResponse,
    SignupRequest,
    SocialLoginRequest,
    UpdateProfileRequest,
    UserResponse,
    VerifyEmailRequest,
)
from nivaro.services.auth import LoginResult, get_auth_service
from nivaro.services.email import EmailSender, get_email_sender
from nivaro.services.sessions import get_session_registry
from nivaro.services.social import SocialIdentityVerifier, get_social_verifier

logger = logging.getLogger("nivaro")

router = APIRouter(prefix="/auth", tags=["Authentication"])

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent"


def _client_info(request: Request) -> tuple[str | None, str | None]:
    return request.headers.get("User-Agent"), request.client.host if request.client else None


def _login_response(response: Response, result: LoginResult) -> AuthResponse:
    max_age = max(int((result.expires_at - result.session.created_at).total_seconds()), 0)
    set_auth_cookie(response, result.token, max_age)
    return AuthResponse(
        user=UserResponse.model_validate(result.user),
        token=result.token,
        expires_at=result.expires_at,
    )


@router.post("/signup", response_model=AuthResponse, status_code=201)
@limiter.limit("5/minute")
def signup(
    request: Request,
    body: SignupRequest,
    db: Session = Depends(get_db),
    mailer: EmailSender = Depends(get_email_sender),
) -> AuthResponse:
    """Register a new account. No token is issued until the user logs in."""
    user = get_auth_service().register(db, body.email, body.password, body.name, mailer)
    return AuthResponse(user=UserResponse.model_validate(user))


@router.post("/login", response_model=AuthResponse)
@limiter.limit("10/minute")
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: Session = Depends(get_db),
) -> AuthResponse:
    """Authenticate and receive a bearer token (also set as an http-only cookie)."""
    user_agent, ip_address = _client_info(request)
    result = get_auth_service().authenticate(db, body.email, body.password, user_agent, ip_address)
    return _login_response(response, result)


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    token: str | None = Depends(get_optional_token),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Revoke the current session, if any, and clear the cookie."""
    get_auth_service().logout(db, token)
    clear_auth_cookie(response)
    return MessageResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit("3/minute")
def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    mailer: EmailSender = Depends(get_email_sender),
) -> MessageResponse:
    """Request a password reset. The answer is the same whether or not the account exists."""
    get_auth_service().request_password_reset(db, body.email, mailer)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit("5/minute")
def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Reset password using a valid token. Every session is signed out."""
    get_auth_service().reset_password(db, body.token, body.new_password)
    return MessageResponse(message="Password reset successfully")


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    body: ChangePasswordRequest,
    user: CurrentUser = Depends(require_csrf),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Change password; other devices are signed out, this one stays."""
    get_auth_service().change_password(db, user.user_id, user.token, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")


@router.post("/verify-email", response_model=MessageResponse)
@limiter.limit("10/minute")
def verify_email(
    request: Request,
    body: VerifyEmailRequest,
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Confirm an email address with the emailed token."""
    get_auth_service().verify_email(db, body.token)
    return MessageResponse(message="Email verified successfully")


@router.get("/me", response_model=AuthResponse)
def me(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AuthResponse:
    """Return the authenticated user."""
    record = get_auth_service().get_user(db, user.user_id)
    return AuthResponse(user=UserResponse.model_validate(record))


@router.put("/profile", response_model=AuthResponse)
def update_profile(
    body: UpdateProfileRequest,
    user: CurrentUser = Depends(require_csrf),
    db: Session = Depends(get_db),
    mailer: EmailSender = Depends(get_email_sender),
) -> AuthResponse:
    """Update name, avatar or email. A new email must be verified again."""
    record = get_auth_service().update_profile(
        db,
        user.user_id,
        mailer,
        name=body.name,
        avatar=body.avatar,
        email=body.email,
    )
    return AuthResponse(user=UserResponse.model_validate(record))


@router.delete("/account", response_model=MessageResponse)
def delete_account(
    response: Response,
    user: CurrentUser = Depends(require_csrf),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Deactivate the account and sign out everywhere."""
    get_auth_service().deactivate_account(db, user.user_id)
    clear_auth_cookie(response)
    return MessageResponse(message="Account deleted successfully")


@router.post("/social", response_model=AuthResponse)
@limiter.limit("10/minute")
def social_login(
    request: Request,
    response: Response,
    body: SocialLoginRequest,
    db: Session = Depends(get_db),
    verifier: SocialIdentityVerifier = Depends(get_social_verifier),
) -> AuthResponse:
    """Sign in with a Google or GitHub access token."""
    profile = verifier.verify(body.provider, body.access_token)
    if not profile:
        raise Unauthorized("Social login failed")
    user_agent, ip_address = _client_info(request)
    result = get_auth_service().social_login(db, profile, user_agent, ip_address)
    return _login_response(response, result)


@router.get("/sessions", response_model=SessionListResponse)
def list_sessions(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SessionListResponse:
    """List the caller's live sessions."""
    sessions = get_session_registry().list_active(db, user.user_id)
    items = []
    for session in sessions:
        item = SessionResponse.model_validate(session)
        item.is_current = session.id == user.session_id
        items.append(item)
    return SessionListResponse(items=items, total=len(items))


@router.delete("/sessions", response_model=MessageResponse)
def revoke_all_sessions(
    response: Response,
    user: CurrentUser = Depends(require_csrf),
    db: Session = Depends(get_db),
) -> MessageResponse:
    """Sign out every session, including this one."""
    get_session_registry().revoke_all(db, user.user_id)
    clear_auth_cookie(response)
    return MessageResponse(message="All sessions revoked successfully")
