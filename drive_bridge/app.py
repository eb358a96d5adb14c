"""FastAPI entry point for the Drive bridge service.

Endpoints:
- GET /file/{file_id}/text        - Extract plain text (pdf, txt, docx, xlsx, Google Doc)
- GET /file/{file_id}/content     - Raw bytes as an attachment
- GET /folders                    - List folders
- GET /folder/{folder_id}/files   - List files in a folder
- GET /search                     - Files whose name contains ?q=
- GET /search-folders             - Folders whose name contains ?q=
- GET /auth, GET /callback        - OAuth consent + code exchange
- GET /health                     - Liveness probe
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated
from urllib.parse import quote

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from drive_bridge.config import (
    CORS_ALLOW_CREDENTIALS,
    CORS_ALLOW_HEADERS,
    CORS_ALLOW_METHODS,
    CORS_ALLOW_ORIGINS,
    DRIVE_AUTH_MODE,
    DRIVE_LIST_DEFAULT_LIMIT,
    DRIVE_LIST_MAX_LIMIT,
    LOG_FORMAT,
    LOG_LEVEL,
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_EXTRACT,
    SESSION_COOKIE_NAME,
    SESSION_COOKIE_SECURE,
    validate_config,
)
from drive_bridge.drive.client import DriveClient
from drive_bridge.errors import DriveBridgeError, UnauthorizedError
from drive_bridge.extraction.dispatcher import ExtractionDispatcher
from drive_bridge.logging_config import generate_request_id, request_id_var, setup_logging
from drive_bridge.models import (
    AuthCallbackResponse,
    DriveItem,
    ErrorResponse,
    ExtractionResponse,
    FileRef,
    FolderFilesResponse,
    FolderListResponse,
    FolderRef,
    HealthResponse,
    SearchFilesResponse,
    SearchFoldersResponse,
    UnauthorizedResponse,
)
from drive_bridge.session import DriveSession, OAuthManager, SessionStore, resolve_session

logger = logging.getLogger(__name__)

_sessions = SessionStore()
_oauth: OAuthManager | None = OAuthManager() if DRIVE_AUTH_MODE == "oauth" else None
_dispatcher = ExtractionDispatcher()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: configure logging and validate settings."""
    setup_logging(level=LOG_LEVEL, log_format=LOG_FORMAT)
    validate_config()
    logger.info("Drive bridge started (auth_mode=%s)", DRIVE_AUTH_MODE)
    yield
    logger.info("Drive bridge stopped")


app = FastAPI(
    title="Drive Bridge API",
    version="0.1.0",
    lifespan=lifespan,
)

# -- Rate limiting ------------------------------------------------------------

limiter = Limiter(key_func=get_remote_address, default_limits=[RATE_LIMIT_DEFAULT])
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(status_code=429, content={"error": "Rate limit exceeded"})


if CORS_ALLOW_CREDENTIALS and "*" in CORS_ALLOW_ORIGINS:
    raise RuntimeError("Invalid CORS config: wildcard origin cannot be combined with credentials=true")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_credentials=CORS_ALLOW_CREDENTIALS,
    allow_methods=CORS_ALLOW_METHODS,
    allow_headers=CORS_ALLOW_HEADERS,
)


# -- Error rendering ----------------------------------------------------------


@app.exception_handler(DriveBridgeError)
async def _drive_bridge_error_handler(request: Request, exc: DriveBridgeError) -> JSONResponse:
    if isinstance(exc, UnauthorizedError) and exc.auth_url is None and _oauth is not None:
        exc.auth_url = _oauth.authorization_url()
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


@app.exception_handler(StarletteHTTPException)
async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()))
    return JSONResponse(status_code=422, content={"error": f"Invalid request: {where} {first.get('msg', '')}".strip()})


@app.exception_handler(Exception)
async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    # Runs outside the request id middleware, so the header is set here
    request_id = getattr(request.state, "request_id", None) or request.headers.get("x-request-id")
    headers = {"x-request-id": request_id} if request_id else None
    return JSONResponse(status_code=500, content={"error": str(exc) or type(exc).__name__}, headers=headers)


# -- Request ID middleware ----------------------------------------------------


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Attach a unique request ID for trace correlation."""
    request_id = request.headers.get("x-request-id") or generate_request_id()
    request.state.request_id = request_id
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["x-request-id"] = request_id
    return response


# -- Dependencies -------------------------------------------------------------


async def get_session(request: Request) -> AsyncIterator[DriveSession]:
    """Dependency: the caller's Drive session, refreshed if expired.

    A session whose credentials Drive rejects, during refresh or mid-request,
    is dropped so the caller is sent back through consent.
    """
    session = resolve_session(request, _sessions, _oauth)
    try:
        await asyncio.to_thread(session.ensure_fresh)
    except UnauthorizedError:
        _sessions.drop(session.session_id)
        raise
    try:
        yield session
    except UnauthorizedError:
        if _sessions.drop(session.session_id):
            logger.info("Dropped session rejected by Drive (%d active)", len(_sessions))
        raise


async def get_drive_client(session: Annotated[DriveSession, Depends(get_session)]) -> DriveClient:
    return await asyncio.to_thread(DriveClient.for_session, session)


def get_dispatcher() -> ExtractionDispatcher:
    return _dispatcher


def _clamp_limit(limit: int) -> int:
    return min(max(limit, 1), DRIVE_LIST_MAX_LIMIT)


def _require_term(q: str) -> str:
    term = q.strip()
    if not term:
        raise HTTPException(status_code=400, detail="Query parameter 'q' must not be blank")
    return term


def content_disposition(filename: str) -> str:
    """``attachment; filename="..."`` with an RFC 5987 form for non-ASCII names."""
    cleaned = filename.replace("\r", " ").replace("\n", " ")
    fallback = cleaned.encode("ascii", "replace").decode("ascii").replace("\\", "_").replace('"', "'")
    header = f'attachment; filename="{fallback}"'
    if fallback != cleaned:
        header += f"; filename*=UTF-8''{quote(cleaned, safe='')}"
    return header


_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    401: {"model": UnauthorizedResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}

# -- Health -------------------------------------------------------------------


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="alive", timestamp=datetime.now(UTC).isoformat())


# -- Auth ---------------------------------------------------------------------


@app.get("/auth")
async def auth() -> RedirectResponse:
    """Send the browser to Google's consent screen."""
    if _oauth is None:
        raise HTTPException(status_code=400, detail=f"OAuth is disabled (DRIVE_AUTH_MODE={DRIVE_AUTH_MODE})")
    return RedirectResponse(_oauth.authorization_url(), status_code=307)


@app.get("/callback", response_model=AuthCallbackResponse)
async def callback(
    response: Response,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
) -> AuthCallbackResponse:
    """Exchange the authorization code and start a session."""
    if _oauth is None:
        raise HTTPException(status_code=400, detail=f"OAuth is disabled (DRIVE_AUTH_MODE={DRIVE_AUTH_MODE})")
    if error:
        raise UnauthorizedError(f"Authorization was not granted: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    oauth = _oauth
    credentials = await asyncio.to_thread(lambda: oauth.exchange(code=code, state=state))
    session_id = _sessions.create(credentials)
    response.set_cookie(
        SESSION_COOKIE_NAME,
        session_id,
        httponly=True,
        secure=SESSION_COOKIE_SECURE,
        samesite="lax",
    )
    logger.info("New Drive session established (%d active)", len(_sessions))
    return AuthCallbackResponse(status="authenticated", session_id=session_id)


# -- Files --------------------------------------------------------------------


@app.get(
    "/file/{file_id}/text",
    response_model=ExtractionResponse,
    responses={**_ERROR_RESPONSES, 415: {"model": ErrorResponse}},
)
@limiter.limit(RATE_LIMIT_EXTRACT)
async def file_text(
    request: Request,
    file_id: str,
    client: Annotated[DriveClient, Depends(get_drive_client)],
    dispatcher: Annotated[ExtractionDispatcher, Depends(get_dispatcher)],
) -> ExtractionResponse:
    """Fetch a file and return its text content."""
    result = await dispatcher.extract(file_id, fetcher=client)
    return ExtractionResponse(
        file=FileRef(name=result.file.name, id=file_id),
        type=str(result.format),
        text=result.text,
    )


@app.get("/file/{file_id}/content", responses=_ERROR_RESPONSES)
async def file_content(
    file_id: str,
    client: Annotated[DriveClient, Depends(get_drive_client)],
) -> Response:
    """Return the file's bytes unchanged, as a download."""
    item = await client.get_metadata(file_id)
    data = await client.get_raw_content(file_id)
    return Response(
        content=data,
        media_type=item.mime_type or "application/octet-stream",
        headers={"Content-Disposition": content_disposition(item.name)},
    )


# -- Listing ------------------------------------------------------------------


@app.get("/folders", response_model=FolderListResponse, responses=_ERROR_RESPONSES)
async def list_folders(
    client: Annotated[DriveClient, Depends(get_drive_client)],
) -> FolderListResponse:
    folders = await client.list_folders()
    return FolderListResponse(folders=[DriveItem(**f) for f in folders], total=len(folders))


@app.get("/folder/{folder_id}/files", response_model=FolderFilesResponse, responses=_ERROR_RESPONSES)
async def list_folder_files(
    folder_id: str,
    client: Annotated[DriveClient, Depends(get_drive_client)],
    limit: int = DRIVE_LIST_DEFAULT_LIMIT,
) -> FolderFilesResponse:
    files = await client.list_folder_files(folder_id, limit=_clamp_limit(limit))
    return FolderFilesResponse(
        folder=FolderRef(id=folder_id),
        files=[DriveItem(**f) for f in files],
        total=len(files),
    )


@app.get("/search", response_model=SearchFilesResponse, responses=_ERROR_RESPONSES)
async def search_files(
    client: Annotated[DriveClient, Depends(get_drive_client)],
    q: str = "",
    limit: int = DRIVE_LIST_DEFAULT_LIMIT,
) -> SearchFilesResponse:
    term = _require_term(q)
    files = await client.search_files(term, limit=_clamp_limit(limit))
    return SearchFilesResponse(query=term, files=[DriveItem(**f) for f in files], total=len(files))


@app.get("/search-folders", response_model=SearchFoldersResponse, responses=_ERROR_RESPONSES)
async def search_folders(
    client: Annotated[DriveClient, Depends(get_drive_client)],
    q: str = "",
    limit: int = DRIVE_LIST_DEFAULT_LIMIT,
) -> SearchFoldersResponse:
    term = _require_term(q)
    folders = await client.search_folders(term, limit=_clamp_limit(limit))
    return SearchFoldersResponse(query=term, folders=[DriveItem(**f) for f in folders], total=len(folders))
