"""Content-type -> extraction format lookup.

Exact string match against a closed table; no prefix, wildcard or
case-insensitive matching.
"""

from __future__ import annotations

from types import MappingProxyType

from drive_bridge.errors import UnsupportedTypeError
from drive_bridge.extraction.types import FormatTag

PDF_MIME = "application/pdf"
TEXT_MIME = "text/plain"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
GOOGLE_DOC_MIME = "application/vnd.google-apps.document"
FOLDER_MIME = "application/vnd.google-apps.folder"

FORMATS_BY_MIME: MappingProxyType[str, FormatTag] = MappingProxyType(
    {
        PDF_MIME: FormatTag.PDF,
        TEXT_MIME: FormatTag.TXT,
        DOCX_MIME: FormatTag.DOCX,
        XLSX_MIME: FormatTag.XLSX,
        GOOGLE_DOC_MIME: FormatTag.GOOGLE_DOC,
    }
)


def detect_format(mime_type: str | None) -> FormatTag | None:
    if mime_type is None:
        return None
    return FORMATS_BY_MIME.get(mime_type)


def require_format(mime_type: str | None) -> FormatTag:
    tag = detect_format(mime_type)
    if tag is None:
        raise UnsupportedTypeError(mime_type)
    return tag
