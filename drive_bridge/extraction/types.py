from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class FormatTag(StrEnum):
    PDF = "pdf"
    TXT = "txt"
    DOCX = "docx"
    XLSX = "xlsx"
    GOOGLE_DOC = "google-doc"


class DispatchState(StrEnum):
    IDLE = "idle"
    METADATA_FETCHED = "metadata_fetched"
    CONTENT_FETCHED = "content_fetched"
    EXTRACTED = "extracted"
    RESPONDED = "responded"
    FAILED = "failed"


@dataclass(frozen=True)
class RemoteFile:
    id: str
    name: str
    mime_type: str | None
    size: int | None = None
    modified_time: datetime | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RemoteFile:
        """Build from a Drive ``files`` resource dict."""
        size = data.get("size")
        modified = data.get("modifiedTime")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            mime_type=data.get("mimeType"),
            size=int(size) if size is not None else None,
            modified_time=datetime.fromisoformat(modified.replace("Z", "+00:00")) if modified else None,
        )


@dataclass(frozen=True)
class ExtractResult:
    text: str
    pages: int | None
    extraction_meta: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExtractionResult:
    file: RemoteFile
    format: FormatTag
    text: str
