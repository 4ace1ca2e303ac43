"""
Google Calendar connect flow: signed state, callback and disconnect.
"""
from datetime import datetime, timedelta, timezone
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

from core.config import settings
from services.oauth_state import create_oauth_state, verify_oauth_state
from services.token_encryption import decrypt_token, encrypt_token


class TestOAuthState:
    def test_roundtrip(self):
        token = create_oauth_state({"user_id": "abc", "return_to": "/calendar"})
        payload = verify_oauth_state(token)
        assert payload["user_id"] == "abc"
        assert payload["return_to"] == "/calendar"

    def test_tampered_payload_is_rejected(self):
        token = create_oauth_state({"user_id": "abc"})
        payload_b64, sig = token.split(".", 1)
        forged = create_oauth_state({"user_id": "someone-else"}).split(".", 1)[0]
        assert verify_oauth_state(f"{forged}.{sig}") is None
        assert verify_oauth_state(payload_b64) is None
        assert verify_oauth_state("") is None

    def test_signed_garbage_is_rejected(self):
        from services.oauth_state import _encode, _signature

        for raw in (b"[1, 2]", b"not json", b'{"user_id": "abc"}', b'{"iat": "soon"}'):
            body = _encode(raw)
            assert verify_oauth_state(f"{body}.{_signature(body)}") is None
        assert verify_oauth_state("café.sigé") is None

    def test_expired_state_is_rejected(self):
        issued = datetime.now(timezone.utc) - timedelta(hours=2)
        token = create_oauth_state({"user_id": "abc"}, now=issued)
        assert verify_oauth_state(token, ttl_s=600) is None
        assert verify_oauth_state(token, ttl_s=0) is not None


class TestConnectFlow:
    def test_auth_url_carries_signed_state(self, auth_client, current_user, monkeypatch):
        monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "client-id")
        resp = auth_client.get("/api/auth/google/url", params={"return_to": "/settings"})
        assert resp.status_code == 200

        query = parse_qs(urlparse(resp.json()["auth_url"]).query)
        assert query["client_id"] == ["client-id"]
        assert query["access_type"] == ["offline"]
        state = verify_oauth_state(query["state"][0])
        assert state["user_id"] == str(current_user.id)
        assert state["return_to"] == "/settings"

    def test_open_redirect_is_refused(self, auth_client):
        resp = auth_client.get("/api/auth/google/url", params={"return_to": "//evil.example.com"})
        assert resp.status_code == 400

    def test_callback_stores_encrypted_tokens(self, client, current_user, db_session):
        state = create_oauth_state({"user_id": str(current_user.id), "return_to": "/calendar"})
        tokens = {"access_token": "at-123", "refresh_token": "rt-456", "expires_in": 3600}

        with patch("services.google_calendar.exchange_code_for_token", return_value=tokens):
            resp = client.get(
                "/api/auth/google/callback",
                params={"code": "auth-code", "state": state},
                follow_redirects=False,
            )

        assert resp.status_code == 302
        assert resp.headers["location"].endswith("/calendar?calendar=connected")

        db_session.refresh(current_user)
        assert current_user.google_refresh_token != "rt-456"
        assert decrypt_token(current_user.google_refresh_token) == "rt-456"
        assert decrypt_token(current_user.google_access_token) == "at-123"
        assert current_user.google_token_expires_at is not None
        assert client.get("/api/auth/me").json()["calendar_connected"] is True

    def test_callback_with_bad_state_is_403(self, client, current_user):
        resp = client.get(
            "/api/auth/google/callback",
            params={"code": "auth-code", "state": "not.valid"},
            follow_redirects=False,
        )
        assert resp.status_code == 403

    def test_declined_consent_redirects(self, client, current_user):
        state = create_oauth_state({"user_id": str(current_user.id), "return_to": "/calendar"})
        resp = client.get(
            "/api/auth/google/callback",
            params={"error": "access_denied", "state": state},
            follow_redirects=False,
        )
        assert resp.status_code == 302
        assert resp.headers["location"].endswith("?calendar=denied")

    def test_disconnect_clears_tokens(self, auth_client, current_user, db_session):
        current_user.google_refresh_token = encrypt_token("rt")
        current_user.google_access_token = encrypt_token("at")
        db_session.commit()

        with patch("services.google_calendar.revoke_token") as mock_revoke:
            assert auth_client.delete("/api/auth/google").status_code == 204

        mock_revoke.assert_called_once_with("rt")
        db_session.refresh(current_user)
        assert current_user.google_refresh_token is None
        assert current_user.google_access_token is None
        assert auth_client.get("/api/auth/me").json()["calendar_connected"] is False
