"""Error taxonomy for the extraction pipeline.

Every failure the core reports is a ``DriveBridgeError`` subclass. The HTTP
layer renders them as ``{"error": message}`` with the class's status code;
``UnsupportedTypeError`` is a user-correctable outcome and keeps its own 415.
"""

from __future__ import annotations

from typing import Any


class DriveBridgeError(Exception):
    status_code: int = 500

    def __init__(self, message: str, *, state: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        # Dispatcher state the error was raised in, when known
        self.state = state

    def payload(self) -> dict[str, Any]:
        return {"error": self.message}


class UnauthorizedError(DriveBridgeError):
    """No session, or the provider rejected its credentials."""

    status_code = 401

    def __init__(self, message: str = "Not authenticated", *, auth_url: str | None = None, state: str | None = None) -> None:
        super().__init__(message, state=state)
        self.auth_url = auth_url

    def payload(self) -> dict[str, Any]:
        return {"error": self.message, "auth_url": self.auth_url}


class NotFoundError(DriveBridgeError):
    status_code = 404


class UnsupportedTypeError(DriveBridgeError):
    status_code = 415

    def __init__(self, mime_type: str | None, *, state: str | None = None) -> None:
        super().__init__(f"Unsupported file type: {mime_type}", state=state)
        self.mime_type = mime_type


class FetchError(DriveBridgeError):
    """Network or provider failure while retrieving content."""


class ExportUnsupportedError(FetchError):
    """The provider refused to export this file into the requested format."""


class CorruptDocumentError(DriveBridgeError):
    """Content was retrieved but its format's parser could not read it."""
