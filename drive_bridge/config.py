"""Environment-variable-driven configuration for the Drive bridge service.

All config comes from env vars; nothing is read from disk.
"""

from __future__ import annotations

import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_csv(name: str, default: str) -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


# -- Auth ---------------------------------------------------------------------
DRIVE_AUTH_MODE: str = os.getenv("DRIVE_AUTH_MODE", "oauth").strip().lower()
GOOGLE_CLIENT_ID: str | None = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET: str | None = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI: str = os.getenv("GOOGLE_REDIRECT_URI", "http://localhost:3000/callback")
GOOGLE_AUTH_URI: str = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI: str = "https://oauth2.googleapis.com/token"
DRIVE_SCOPES: list[str] = _env_csv(
    "DRIVE_SCOPES",
    "https://www.googleapis.com/auth/drive.readonly,"
    "https://www.googleapis.com/auth/documents.readonly",
)

# -- Sessions -----------------------------------------------------------------
SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "drive_bridge_session")
SESSION_COOKIE_SECURE: bool = _env_bool("SESSION_COOKIE_SECURE", False)
SESSION_MAX_ACTIVE: int = int(os.getenv("SESSION_MAX_ACTIVE", "10000"))

# -- Fetching -----------------------------------------------------------------
DRIVE_GOOGLE_DOC_MODE: str = os.getenv("DRIVE_GOOGLE_DOC_MODE", "export").strip().lower()
DRIVE_FETCH_TIMEOUT_SECONDS: float = float(os.getenv("DRIVE_FETCH_TIMEOUT_SECONDS", "60"))
DRIVE_DOWNLOAD_CHUNK_BYTES: int = int(os.getenv("DRIVE_DOWNLOAD_CHUNK_BYTES", str(5 * 1024 * 1024)))

# -- Listing ------------------------------------------------------------------
DRIVE_LIST_DEFAULT_LIMIT: int = int(os.getenv("DRIVE_LIST_DEFAULT_LIMIT", "20"))
DRIVE_LIST_MAX_LIMIT: int = int(os.getenv("DRIVE_LIST_MAX_LIMIT", "1000"))

# -- Rate limiting ------------------------------------------------------------
RATE_LIMIT_DEFAULT: str = os.getenv("RATE_LIMIT_DEFAULT", "60/minute")
RATE_LIMIT_EXTRACT: str = os.getenv("RATE_LIMIT_EXTRACT", "30/minute")

# -- CORS ---------------------------------------------------------------------
CORS_ALLOW_ORIGINS: list[str] = _env_csv("CORS_ALLOW_ORIGINS", "*")
CORS_ALLOW_METHODS: list[str] = _env_csv("CORS_ALLOW_METHODS", "GET,OPTIONS")
CORS_ALLOW_HEADERS: list[str] = _env_csv(
    "CORS_ALLOW_HEADERS",
    "Authorization,Content-Type,X-Session-Id,X-Request-Id",
)
CORS_ALLOW_CREDENTIALS: bool = _env_bool("CORS_ALLOW_CREDENTIALS", False)

# -- Logging ------------------------------------------------------------------
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "text").strip().lower()

# -- Server -------------------------------------------------------------------
HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "8080"))

AUTH_MODES = frozenset({"oauth", "adc"})
GOOGLE_DOC_MODES = frozenset({"export", "structured"})


def validate_config() -> None:
    """Fail fast on settings the service cannot run with."""
    if DRIVE_AUTH_MODE not in AUTH_MODES:
        raise ValueError(f"DRIVE_AUTH_MODE must be one of {sorted(AUTH_MODES)}, got {DRIVE_AUTH_MODE!r}")
    if DRIVE_GOOGLE_DOC_MODE not in GOOGLE_DOC_MODES:
        raise ValueError(
            f"DRIVE_GOOGLE_DOC_MODE must be one of {sorted(GOOGLE_DOC_MODES)}, got {DRIVE_GOOGLE_DOC_MODE!r}"
        )
    if DRIVE_AUTH_MODE == "oauth":
        missing = [
            k
            for k, v in {
                "GOOGLE_CLIENT_ID": GOOGLE_CLIENT_ID,
                "GOOGLE_CLIENT_SECRET": GOOGLE_CLIENT_SECRET,
            }.items()
            if not v
        ]
        if missing:
            raise ValueError(f"OAuth mode but missing config: {', '.join(missing)}")
    if DRIVE_FETCH_TIMEOUT_SECONDS < 0:
        raise ValueError("DRIVE_FETCH_TIMEOUT_SECONDS must be >= 0")
    if DRIVE_DOWNLOAD_CHUNK_BYTES < 256 * 1024:
        raise ValueError("DRIVE_DOWNLOAD_CHUNK_BYTES must be >= 262144")
    if SESSION_MAX_ACTIVE < 1:
        raise ValueError("SESSION_MAX_ACTIVE must be >= 1")
    if not 1 <= DRIVE_LIST_DEFAULT_LIMIT <= DRIVE_LIST_MAX_LIMIT:
        raise ValueError("DRIVE_LIST_DEFAULT_LIMIT must be between 1 and DRIVE_LIST_MAX_LIMIT")
