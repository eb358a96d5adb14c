"""Unit tests for session storage, credential refresh and the OAuth manager."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from google.auth.exceptions import DefaultCredentialsError, RefreshError
from starlette.requests import Request

from drive_bridge.errors import UnauthorizedError
from drive_bridge.session import (
    DriveSession,
    OAuthManager,
    SessionStore,
    _adc_credentials,
    adc_session,
    extract_session_id,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _request(*, headers: dict[str, str] | None = None, query: str = "") -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw_headers, "query_string": query.encode()})


def _flow(state: str) -> MagicMock:
    flow = MagicMock()
    flow.authorization_url.return_value = (f"https://accounts.google.com/o/oauth2/auth?state={state}", state)
    return flow


# ---------------------------------------------------------------------------
# SessionStore
# ---------------------------------------------------------------------------


class TestSessionStore:
    def test_create_and_get(self):
        store = SessionStore()
        creds = MagicMock()
        session_id = store.create(creds)
        assert session_id
        session = store.get(session_id)
        assert session is not None
        assert session.session_id == session_id
        assert session.credentials is creds
        assert len(store) == 1

    def test_ids_are_unique(self):
        store = SessionStore()
        ids = {store.create(MagicMock()) for _ in range(20)}
        assert len(ids) == 20

    def test_get_missing(self):
        store = SessionStore()
        assert store.get(None) is None
        assert store.get("") is None
        assert store.get("nope") is None

    def test_drop(self):
        store = SessionStore()
        session_id = store.create(MagicMock())
        assert store.drop(session_id) is True
        assert store.drop(session_id) is False
        assert store.drop(None) is False
        assert len(store) == 0

    def test_oldest_session_evicted_at_capacity(self):
        store = SessionStore(max_sessions=2)
        first = store.create(MagicMock())
        second = store.create(MagicMock())
        third = store.create(MagicMock())
        assert len(store) == 2
        assert store.get(first) is None
        assert store.get(second) is not None
        assert store.get(third) is not None


# ---------------------------------------------------------------------------
# extract_session_id
# ---------------------------------------------------------------------------


class TestExtractSessionId:
    def test_cookie_wins(self):
        req = _request(headers={"Cookie": "drive_bridge_session=from-cookie", "X-Session-Id": "from-header"})
        assert extract_session_id(req) == "from-cookie"

    def test_header(self):
        assert extract_session_id(_request(headers={"X-Session-Id": " abc "})) == "abc"

    def test_query_param(self):
        assert extract_session_id(_request(query="session=xyz")) == "xyz"

    def test_none(self):
        assert extract_session_id(_request()) is None


# ---------------------------------------------------------------------------
# DriveSession.ensure_fresh
# ---------------------------------------------------------------------------


class TestEnsureFresh:
    def test_valid_credentials_untouched(self):
        creds = MagicMock(valid=True)
        DriveSession(credentials=creds).ensure_fresh()
        creds.refresh.assert_not_called()

    def test_expired_with_refresh_token_refreshes(self):
        creds = MagicMock(valid=False, refresh_token="1//refresh")
        DriveSession(credentials=creds).ensure_fresh()
        creds.refresh.assert_called_once()

    def test_expired_without_refresh_token(self):
        creds = MagicMock(valid=False, refresh_token=None)
        with pytest.raises(UnauthorizedError, match="Session expired"):
            DriveSession(credentials=creds).ensure_fresh()
        creds.refresh.assert_not_called()

    def test_service_credentials_refresh_without_token(self):
        creds = MagicMock(spec=["valid", "refresh"], valid=False)
        DriveSession(credentials=creds).ensure_fresh()
        creds.refresh.assert_called_once()

    def test_refresh_rejected(self):
        creds = MagicMock(valid=False, refresh_token="1//refresh")
        creds.refresh.side_effect = RefreshError("invalid_grant")
        with pytest.raises(UnauthorizedError, match="Session expired"):
            DriveSession(credentials=creds, session_id="s1").ensure_fresh()


# ---------------------------------------------------------------------------
# OAuthManager
# ---------------------------------------------------------------------------


class TestOAuthManager:
    def test_authorization_url_requests_offline_access(self):
        flow = _flow("state-1")
        with patch("drive_bridge.session.Flow.from_client_config", return_value=flow) as from_config:
            url = OAuthManager(client_id="cid", client_secret="secret", redirect_uri="http://localhost/cb").authorization_url()

        assert url.endswith("state=state-1")
        flow.authorization_url.assert_called_once_with(
            access_type="offline",
            include_granted_scopes="true",
            prompt="consent",
        )
        config = from_config.call_args.args[0]
        assert config["web"]["client_id"] == "cid"
        assert config["web"]["redirect_uris"] == ["http://localhost/cb"]

    def test_exchange_known_state(self):
        flow = _flow("state-1")
        with patch("drive_bridge.session.Flow.from_client_config", return_value=flow):
            manager = OAuthManager(client_id="cid", client_secret="secret")
            manager.authorization_url()
            creds = manager.exchange(code="4/abc", state="state-1")

        flow.fetch_token.assert_called_once_with(code="4/abc")
        assert creds is flow.credentials

    def test_state_is_single_use(self):
        flows = [_flow("state-1"), _flow("state-2")]
        with patch("drive_bridge.session.Flow.from_client_config", side_effect=flows):
            manager = OAuthManager(client_id="cid", client_secret="secret")
            manager.authorization_url()
            manager.exchange(code="4/abc", state="state-1")
            with pytest.raises(UnauthorizedError) as exc_info:
                manager.exchange(code="4/abc", state="state-1")
        assert exc_info.value.auth_url is not None
        assert exc_info.value.auth_url.endswith("state=state-2")

    def test_failed_code_exchange(self):
        flows = [_flow("state-1"), _flow("state-2")]
        flows[0].fetch_token.side_effect = ValueError("invalid_grant")
        with patch("drive_bridge.session.Flow.from_client_config", side_effect=flows):
            manager = OAuthManager(client_id="cid", client_secret="secret")
            manager.authorization_url()
            with pytest.raises(UnauthorizedError, match="exchange failed"):
                manager.exchange(code="bad", state="state-1")


# ---------------------------------------------------------------------------
# Application default credentials
# ---------------------------------------------------------------------------


class TestAdcSession:
    @pytest.fixture(autouse=True)
    def _clear_cache(self):
        _adc_credentials.cache_clear()
        yield
        _adc_credentials.cache_clear()

    def test_uses_default_credentials(self):
        creds = MagicMock()
        with patch("drive_bridge.session.google.auth.default", return_value=(creds, "proj")):
            session = adc_session()
        assert session.credentials is creds
        assert session.session_id == "adc"

    def test_missing_default_credentials(self):
        with patch(
            "drive_bridge.session.google.auth.default",
            side_effect=DefaultCredentialsError("could not find default credentials"),
        ):
            with pytest.raises(UnauthorizedError, match="default credentials"):
                adc_session()
