"""
Signed `state` parameter for the Google Calendar connect flow.

The callback arrives from Google's redirect, where the session cookie may
not be sent (SameSite). The state token therefore carries the user id and
the post-connect return path itself, as

    <urlsafe-b64 JSON payload>.<urlsafe-b64 HMAC-SHA256 of the payload>

keyed with SECRET_KEY, plus an `iat` stamp so stale links stop working
after OAUTH_STATE_TTL_S seconds (0 disables the age check).
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core.config import settings

SEPARATOR = "."


def _encode(raw: bytes) -> str:
    # Padding is stripped so the token is query-string safe as-is
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _signature(body: str) -> str:
    digest = hmac.new(settings.SECRET_KEY.encode(), body.encode(), hashlib.sha256).digest()
    return _encode(digest)


def _now_ts(now: Optional[datetime] = None) -> int:
    return int((now or datetime.now(timezone.utc)).timestamp())


def create_oauth_state(data: Dict[str, Any], *, now: Optional[datetime] = None) -> str:
    """Sign `data` (JSON-serializable) into a state token."""
    body = _encode(
        json.dumps({**data, "iat": _now_ts(now)}, separators=(",", ":"), sort_keys=True).encode()
    )
    return body + SEPARATOR + _signature(body)


def _unpack(token: str) -> Dict[str, Any]:
    """Payload of a correctly signed token; ValueError for anything else."""
    body, _, sig = (token or "").partition(SEPARATOR)
    if not body or not sig:
        raise ValueError("malformed state")
    if not hmac.compare_digest(sig, _signature(body)):
        raise ValueError("bad state signature")
    payload = json.loads(_decode(body))
    if not isinstance(payload, dict):
        raise ValueError("state payload is not an object")
    return payload


def verify_oauth_state(token: str, *, ttl_s: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """
    Return the payload of a valid, unexpired state token, else None.

    `ttl_s` overrides OAUTH_STATE_TTL_S (tests use it to exercise expiry).
    """
    try:
        payload = _unpack(token)
        issued_at = int(payload["iat"])
    except (ValueError, TypeError, KeyError):
        # json.JSONDecodeError and binascii.Error are ValueErrors
        return None

    ttl = settings.OAUTH_STATE_TTL_S if ttl_s is None else ttl_s
    if ttl > 0 and _now_ts() - issued_at > ttl:
        return None
    return payload
