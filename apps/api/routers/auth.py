"""
Authentication API endpoints.

Provides:
- Registration and login (session cookie)
- Logout
- Current user profile and account deletion
- Google Calendar OAuth connect / callback / disconnect
"""
from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session
import logging
from uuid import UUID

from core.account_security import (
    get_remaining_attempts,
    is_account_locked,
    record_login_attempt,
)
from core.auth import get_current_user, get_session_id
from core.config import settings
from core.database import get_db
from core.exceptions import ConflictError, UnauthorizedError, ValidationError
from core.security import get_password_hash, verify_password
from core.sessions import get_session_store
from models import User
from schemas import UserLogin, UserRegister, UserResponse, UserUpdate
from services import google_calendar
from services.oauth_state import create_oauth_state, verify_oauth_state
from services.periods import is_known_tz
from services.token_encryption import decrypt_token, encrypt_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _set_session_cookie(response: Response, user: User) -> None:
    session_id = get_session_store().create(user.id)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_id,
        max_age=settings.SESSION_TTL_S,
        httponly=True,
        samesite="lax",
        secure=settings.ENVIRONMENT == "production",
        path="/",
    )


def _clear_session(request: Request, response: Response) -> None:
    session_id = get_session_id(request)
    if session_id:
        get_session_store().delete(session_id)
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserRegister,
    response: Response,
    db: Session = Depends(get_db)
):
    """Create an account and start a session."""
    email = normalize_email(user_data.email)

    existing = db.query(User).filter(User.email == email).first()
    if existing:
        raise ConflictError("Email already registered")

    user = User(
        email=email,
        password_hash=get_password_hash(user_data.password),
        display_name=user_data.display_name or email.split("@")[0],
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    _set_session_cookie(response, user)
    logger.info(f"Registered user {user.id}")
    return user


@router.post("/login", response_model=UserResponse)
def login(
    credentials: UserLogin,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Authenticate and start a session.

    Implements account lockout after 5 failed attempts.
    """
    email = normalize_email(credentials.email)

    locked, seconds_remaining = is_account_locked(email)
    if locked:
        minutes_remaining = (seconds_remaining or 0) // 60 + 1
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Account temporarily locked. Try again in {minutes_remaining} minutes.",
            headers={"Retry-After": str(seconds_remaining)},
        )

    user = db.query(User).filter(User.email == email).first()

    if not user or not verify_password(credentials.password, user.password_hash):
        # Record failed attempt even for non-existent users (prevents enumeration)
        record_login_attempt(email, success=False)
        remaining = get_remaining_attempts(email)

        detail = "Invalid email or password"
        if 0 < remaining <= 2:
            detail += f" ({remaining} attempts remaining)"
        elif remaining == 0:
            detail = "Account temporarily locked due to too many failed attempts"
        raise UnauthorizedError(detail)

    record_login_attempt(email, success=True)
    _set_session_cookie(response, user)
    return user


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(request: Request, response: Response):
    """End the current session. Safe to call without a session."""
    _clear_session(request, response)
    response.status_code = status.HTTP_204_NO_CONTENT
    return response


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.patch("/me", response_model=UserResponse)
def update_me(
    changes: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = changes.model_dump(exclude_unset=True)
    if data.get("timezone") and not is_known_tz(data["timezone"]):
        raise ValidationError(f"Unknown timezone: {data['timezone']}", field="timezone")
    if "google_calendar_id" in data and not data["google_calendar_id"]:
        data["google_calendar_id"] = "primary"
    for key, value in data.items():
        setattr(current_user, key, value)
    db.commit()
    db.refresh(current_user)
    return current_user


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(
    request: Request,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete the account and everything it owns."""
    user_id = current_user.id
    db.delete(current_user)
    db.commit()
    _clear_session(request, response)
    logger.info(f"Deleted user {user_id}")
    response.status_code = status.HTTP_204_NO_CONTENT
    return response


# =============================================================================
# GOOGLE CALENDAR OAUTH
# =============================================================================

@router.get("/google/url")
def get_google_auth_url(
    return_to: str = Query("/calendar", description="UI path to return to after OAuth (must start with /)"),
    current_user: User = Depends(get_current_user),
):
    """Authorization URL the web app should redirect the user to."""
    # Prevent open redirect.
    if not return_to.startswith("/") or return_to.startswith("//"):
        raise HTTPException(status_code=400, detail="Invalid return_to")

    state = create_oauth_state({"user_id": str(current_user.id), "return_to": return_to})
    try:
        auth_url = google_calendar.get_auth_url(state=state)
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"auth_url": auth_url}


@router.get("/google/callback")
def google_callback(
    code: str = Query(None, description="Authorization code from Google"),
    state: str = Query(None, description="Signed state token"),
    error: str = Query(None, description="Set by Google when the user declines"),
    db: Session = Depends(get_db),
):
    """
    Handle the Google OAuth redirect.

    The user is identified by the signed `state`, never by the code alone.
    """
    payload = verify_oauth_state(state or "")
    if not payload or not payload.get("user_id"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid OAuth state")

    try:
        user_id = UUID(str(payload["user_id"]))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid OAuth state")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid OAuth state")

    return_to = payload.get("return_to") or "/calendar"
    base = settings.WEB_APP_BASE_URL.rstrip("/")

    if error or not code:
        logger.info(f"Google OAuth declined for user {user.id}: {error}")
        return RedirectResponse(url=f"{base}{return_to}?calendar=denied", status_code=302)

    try:
        token_data = google_calendar.exchange_code_for_token(code)
    except google_calendar.GoogleCalendarError as e:
        logger.warning(f"Google token exchange failed for user {user.id}: {e}")
        return RedirectResponse(url=f"{base}{return_to}?calendar=error", status_code=302)

    user.google_access_token = encrypt_token(token_data.get("access_token"))
    if token_data.get("refresh_token"):
        user.google_refresh_token = encrypt_token(token_data["refresh_token"])
    user.google_token_expires_at = google_calendar.token_expiry(token_data, datetime.now(timezone.utc))
    db.commit()

    logger.info(f"Google Calendar connected for user {user.id}")
    return RedirectResponse(url=f"{base}{return_to}?calendar=connected", status_code=302)


@router.delete("/google", status_code=status.HTTP_204_NO_CONTENT)
def disconnect_google(
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Forget Google tokens. Already-synced events are kept."""
    token = decrypt_token(current_user.google_refresh_token) or decrypt_token(current_user.google_access_token)
    if token:
        google_calendar.revoke_token(token)
    current_user.google_access_token = None
    current_user.google_refresh_token = None
    current_user.google_token_expires_at = None
    db.commit()
    response.status_code = status.HTTP_204_NO_CONTENT
    return response
