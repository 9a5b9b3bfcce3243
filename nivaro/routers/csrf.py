"""CSRF token endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from nivaro.database import get_db
from nivaro.dependencies import CurrentUser, get_current_user
from nivaro.schemas.auth import CSRFTokenResponse
from nivaro.services.csrf import get_csrf_manager

router = APIRouter(tags=["CSRF"])


@router.get("/csrf-token", response_model=CSRFTokenResponse)
def get_csrf_token(
    user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CSRFTokenResponse:
    """Return the caller's anti-forgery token, issuing one if needed."""
    token, expires_at = get_csrf_manager().issue_or_reuse(db, user.user_id)
    return CSRFTokenResponse(token=token, expires_at=expires_at)
