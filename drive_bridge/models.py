"""Pydantic response schemas for the Drive bridge API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

# -- Extraction ---------------------------------------------------------------


class FileRef(BaseModel):
    name: str
    id: str


class ExtractionResponse(BaseModel):
    file: FileRef
    type: str  # pdf | txt | docx | xlsx | google-doc
    text: str


# -- Listing ------------------------------------------------------------------


class DriveItem(BaseModel):
    """A Drive ``files`` resource as returned by the API (camelCase keys)."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    mimeType: str | None = None
    modifiedTime: str | None = None
    size: str | None = None


class FolderRef(BaseModel):
    id: str


class FolderListResponse(BaseModel):
    folders: list[DriveItem]
    total: int


class FolderFilesResponse(BaseModel):
    folder: FolderRef
    files: list[DriveItem]
    total: int


class SearchFilesResponse(BaseModel):
    query: str
    files: list[DriveItem]
    total: int


class SearchFoldersResponse(BaseModel):
    query: str
    folders: list[DriveItem]
    total: int


# -- Auth ---------------------------------------------------------------------


class AuthCallbackResponse(BaseModel):
    status: str
    session_id: str


# -- Errors / health ----------------------------------------------------------


class ErrorResponse(BaseModel):
    error: str


class UnauthorizedResponse(BaseModel):
    error: str
    auth_url: str | None = None


class HealthResponse(BaseModel):
    status: str
    timestamp: str
