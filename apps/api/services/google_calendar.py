"""
Google Calendar provider client.

OAuth authorization-code flow, token refresh, and a paginated
"list events in range" call. Everything else about Google is opaque to
the rest of the API.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, List, Optional
from urllib.parse import quote, urlencode

import requests

from core.config import settings

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"
GOOGLE_CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"

# Read-only access is all the sync needs
GOOGLE_SCOPES = "https://www.googleapis.com/auth/calendar.readonly"

# Refresh when the access token expires within this window
TOKEN_REFRESH_MARGIN = timedelta(minutes=5)
EVENTS_PAGE_SIZE = 250


class GoogleCalendarError(RuntimeError):
    """Provider unavailable or returned an unexpected response."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GoogleAuthError(GoogleCalendarError):
    """Tokens were rejected (expired, revoked, or never granted)."""


def _timeout() -> int:
    return settings.EXTERNAL_API_TIMEOUT


def _raise_for_response(r: requests.Response, action: str) -> None:
    if r.status_code < 400:
        return
    try:
        payload = r.json()
    except ValueError:
        payload = {"error": r.text}
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        error = error.get("status") or error.get("message")
    message = f"Google {action} failed ({r.status_code}): {error or 'unknown error'}"
    if r.status_code in (400, 401, 403) and (r.status_code != 400 or error == "invalid_grant"):
        raise GoogleAuthError(message, status_code=r.status_code)
    raise GoogleCalendarError(message, status_code=r.status_code)


def _post_token(data: Dict, action: str) -> Dict:
    try:
        r = requests.post(GOOGLE_TOKEN_URL, data=data, timeout=_timeout())
    except requests.RequestException as e:
        raise GoogleCalendarError(f"Google {action} request failed: {e}") from e
    _raise_for_response(r, action)
    return r.json()


def get_auth_url(state: Optional[str] = None) -> str:
    if not settings.GOOGLE_CLIENT_ID:
        raise ValueError("GOOGLE_CLIENT_ID is not set")

    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": settings.GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": GOOGLE_SCOPES,
        # offline + consent so Google always hands back a refresh token
        "access_type": "offline",
        "prompt": "consent",
        "include_granted_scopes": "true",
    }
    if state:
        params["state"] = state
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def exchange_code_for_token(code: str) -> Dict:
    """
    Exchange an authorization code for tokens.

    Returns dict with: access_token, refresh_token (first consent only),
    expires_in, scope, token_type
    """
    return _post_token(
        {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": settings.GOOGLE_REDIRECT_URI,
        },
        "token exchange",
    )


def refresh_access_token(refresh_token: str) -> Dict:
    """
    Exchange a refresh token for a new access token.

    Raises GoogleAuthError when the refresh token was revoked.
    """
    return _post_token(
        {
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        },
        "token refresh",
    )


def revoke_token(token: str) -> None:
    """Best-effort revoke on disconnect; failures are logged, not raised."""
    try:
        r = requests.post(GOOGLE_REVOKE_URL, params={"token": token}, timeout=_timeout())
        if r.status_code >= 400:
            logger.info(f"Google token revoke returned {r.status_code}")
    except requests.RequestException as e:
        logger.warning(f"Google token revoke failed: {e}")


def token_expiry(token_data: Dict, now: Optional[datetime] = None) -> Optional[datetime]:
    expires_in = token_data.get("expires_in")
    if expires_in is None:
        return None
    now = now or datetime.now(timezone.utc)
    return now + timedelta(seconds=int(expires_in))


def _rfc3339(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def iter_events(
    access_token: str,
    time_min: datetime,
    time_max: datetime,
    calendar_id: str = "primary",
) -> Iterator[Dict]:
    """
    Yield raw event resources overlapping [time_min, time_max).

    Recurring events are expanded (singleEvents) and cancelled events are
    included so the caller can delete them locally.
    """
    url = f"{GOOGLE_CALENDAR_API_BASE}/calendars/{quote(calendar_id, safe='')}/events"
    headers = {"Authorization": f"Bearer {access_token}"}
    params = {
        "timeMin": _rfc3339(time_min),
        "timeMax": _rfc3339(time_max),
        "singleEvents": "true",
        "showDeleted": "true",
        "orderBy": "startTime",
        "maxResults": EVENTS_PAGE_SIZE,
    }

    page_token = None
    while True:
        if page_token:
            params["pageToken"] = page_token
        try:
            r = requests.get(url, headers=headers, params=params, timeout=_timeout())
        except requests.RequestException as e:
            raise GoogleCalendarError(f"Google events request failed: {e}") from e
        _raise_for_response(r, "events list")

        payload = r.json()
        for item in payload.get("items") or []:
            yield item

        page_token = payload.get("nextPageToken")
        if not page_token:
            break


def list_events(access_token: str, time_min: datetime, time_max: datetime,
                calendar_id: str = "primary") -> List[Dict]:
    return list(iter_events(access_token, time_min, time_max, calendar_id))


def ensure_fresh_token(user, db, now: Optional[datetime] = None) -> str:
    """
    Return a usable access token for `user`, refreshing it first if it
    expires within TOKEN_REFRESH_MARGIN. Persists refreshed tokens.

    Raises GoogleAuthError if the user is not connected or refresh fails.
    """
    from services.token_encryption import decrypt_token, encrypt_token

    now = now or datetime.now(timezone.utc)
    access_token = decrypt_token(user.google_access_token)
    expires_at = user.google_token_expires_at

    if access_token and (expires_at is None or expires_at > now + TOKEN_REFRESH_MARGIN):
        return access_token

    raw_refresh = decrypt_token(user.google_refresh_token)
    if not raw_refresh:
        raise GoogleAuthError("Google Calendar is not connected or the token cannot be refreshed")

    token_data = refresh_access_token(raw_refresh)
    user.google_access_token = encrypt_token(token_data["access_token"])
    if token_data.get("refresh_token"):
        user.google_refresh_token = encrypt_token(token_data["refresh_token"])
    user.google_token_expires_at = token_expiry(token_data, now)
    db.flush()
    logger.info(f"Refreshed Google access token for user {user.id}")
    return token_data["access_token"]
