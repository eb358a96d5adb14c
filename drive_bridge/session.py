"""Session holder: who the request is acting as, and how they got there.

Two auth modes:
1. OAuth web flow (default): ``/auth`` sends the user to Google's consent
   page, ``/callback`` exchanges the code and stores the resulting
   credentials in an in-memory ``SessionStore`` under a random session id.
   The id travels back as a cookie, an ``X-Session-Id`` header or a
   ``session`` query param.
2. ADC: Application Default Credentials (service account) shared by every
   request, for deployments that read a service account's own Drive.

The extraction core never touches this module; it receives a ready
``DriveSession`` per call.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import google.auth
from fastapi import Request
from google.auth.credentials import Credentials
from google.auth.exceptions import DefaultCredentialsError, RefreshError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build

from drive_bridge.config import (
    DRIVE_AUTH_MODE,
    DRIVE_SCOPES,
    GOOGLE_AUTH_URI,
    GOOGLE_CLIENT_ID,
    GOOGLE_CLIENT_SECRET,
    GOOGLE_REDIRECT_URI,
    GOOGLE_TOKEN_URI,
    SESSION_COOKIE_NAME,
    SESSION_MAX_ACTIVE,
)
from drive_bridge.errors import UnauthorizedError

logger = logging.getLogger(__name__)

SESSION_HEADER = "x-session-id"
SESSION_QUERY_PARAM = "session"
_MAX_PENDING_FLOWS = 1000


@dataclass
class DriveSession:
    """Authenticated Google credentials for one caller."""

    credentials: Credentials
    session_id: str | None = None

    def ensure_fresh(self) -> None:
        """Refresh expired credentials before the core uses them (blocking)."""
        if self.credentials.valid:
            return
        if not getattr(self.credentials, "refresh_token", None) and not _is_service_credentials(self.credentials):
            raise UnauthorizedError("Session expired")
        try:
            self.credentials.refresh(GoogleAuthRequest())
        except RefreshError as e:
            logger.warning("Credential refresh failed for session %s: %s", self.session_id, e)
            raise UnauthorizedError("Session expired") from e

    # Each request builds its own resources; httplib2 connections are not
    # safe to share across worker threads.
    def build_drive(self) -> Any:
        return build("drive", "v3", credentials=self.credentials, cache_discovery=False)

    def build_docs(self) -> Any:
        return build("docs", "v1", credentials=self.credentials, cache_discovery=False)


def _is_service_credentials(credentials: Credentials) -> bool:
    # Service-account and compute credentials mint new tokens without a refresh token
    return not hasattr(credentials, "refresh_token")


class SessionStore:
    """In-memory session registry keyed by an opaque random id.

    Holds at most ``max_sessions``; the oldest session is evicted first.
    Sessions are lost on restart; persistent token storage is out of scope.
    """

    def __init__(self, *, max_sessions: int = SESSION_MAX_ACTIVE) -> None:
        self._sessions: dict[str, DriveSession] = {}
        self._max_sessions = max(1, max_sessions)

    def create(self, credentials: Credentials) -> str:
        """Store the credentials under a new session id and return the id."""
        session_id = secrets.token_urlsafe(32)
        self._sessions[session_id] = DriveSession(credentials=credentials, session_id=session_id)
        while len(self._sessions) > self._max_sessions:
            evicted = next(iter(self._sessions))
            del self._sessions[evicted]
            logger.info("Evicted oldest session (%d active)", len(self._sessions))
        return session_id

    def get(self, session_id: str | None) -> DriveSession | None:
        if not session_id:
            return None
        return self._sessions.get(session_id)

    def drop(self, session_id: str | None) -> bool:
        if not session_id:
            return False
        return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)


class OAuthManager:
    """Google OAuth 2.0 web-server flow with pending flows keyed by ``state``."""

    def __init__(
        self,
        *,
        client_id: str | None = GOOGLE_CLIENT_ID,
        client_secret: str | None = GOOGLE_CLIENT_SECRET,
        redirect_uri: str = GOOGLE_REDIRECT_URI,
        scopes: list[str] | None = None,
    ) -> None:
        self._client_config = {
            "web": {
                "client_id": client_id or "",
                "client_secret": client_secret or "",
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [redirect_uri],
            }
        }
        self._redirect_uri = redirect_uri
        self._scopes = scopes or list(DRIVE_SCOPES)
        self._pending: dict[str, Flow] = {}

    def _new_flow(self) -> Flow:
        return Flow.from_client_config(
            self._client_config,
            scopes=self._scopes,
            redirect_uri=self._redirect_uri,
        )

    def authorization_url(self) -> str:
        flow = self._new_flow()
        url, state = flow.authorization_url(
            access_type="offline",
            include_granted_scopes="true",
            prompt="consent",
        )
        self._pending[state] = flow
        while len(self._pending) > _MAX_PENDING_FLOWS:
            # Oldest first; abandoned consent screens never call back
            self._pending.pop(next(iter(self._pending)))
        return url

    def exchange(self, *, code: str, state: str | None) -> Credentials:
        flow = self._pending.pop(state, None) if state else None
        if flow is None:
            raise UnauthorizedError("Unknown or expired OAuth state", auth_url=self.authorization_url())
        try:
            flow.fetch_token(code=code)
        except Exception as e:
            logger.warning("OAuth code exchange failed: %s", e)
            raise UnauthorizedError("OAuth code exchange failed", auth_url=self.authorization_url()) from e
        return flow.credentials


@lru_cache(maxsize=1)
def _adc_credentials() -> Credentials:
    credentials, project = google.auth.default(scopes=DRIVE_SCOPES)
    logger.info("Using application default credentials (project=%s)", project)
    return credentials


def adc_session() -> DriveSession:
    try:
        return DriveSession(credentials=_adc_credentials(), session_id="adc")
    except DefaultCredentialsError as e:
        raise UnauthorizedError(f"Application default credentials unavailable: {e}") from e


def extract_session_id(request: Request) -> str | None:
    """Session id from cookie, header or query param, in that order."""
    session_id = request.cookies.get(SESSION_COOKIE_NAME)
    if session_id:
        return session_id
    session_id = request.headers.get(SESSION_HEADER)
    if session_id:
        return session_id.strip()
    return request.query_params.get(SESSION_QUERY_PARAM) or None


def resolve_session(request: Request, store: SessionStore, oauth: OAuthManager | None) -> DriveSession:
    if DRIVE_AUTH_MODE == "adc":
        return adc_session()

    session = store.get(extract_session_id(request))
    if session is None:
        raise UnauthorizedError(
            "Not authenticated. Visit auth_url to connect Google Drive.",
            auth_url=oauth.authorization_url() if oauth is not None else None,
        )
    return session
