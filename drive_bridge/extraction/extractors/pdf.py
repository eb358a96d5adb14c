from __future__ import annotations

import io
import logging

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from drive_bridge.errors import CorruptDocumentError
from drive_bridge.extraction.extractors.base import Extractor, normalize_text
from drive_bridge.extraction.types import ExtractResult, FormatTag, RemoteFile

logger = logging.getLogger(__name__)


class PdfExtractor(Extractor):
    format = FormatTag.PDF

    def extract(self, *, item: RemoteFile, data: bytes) -> ExtractResult:
        try:
            r = PdfReader(io.BytesIO(data))
            pages = len(r.pages)
            parts: list[str] = []
            for p in r.pages:
                t = p.extract_text() or ""
                if t.strip():
                    parts.append(t)
        except (PyPdfError, ValueError, KeyError, TypeError, OSError) as e:
            raise CorruptDocumentError(f"Could not parse PDF '{item.name}': {e}") from e

        text = normalize_text("\n\n".join(parts))
        if not text:
            # Scanned PDFs have no text layer; there is no OCR fallback here.
            logger.warning("PDF %s has %d page(s) but no extractable text", item.id, pages)
        return ExtractResult(
            text=text,
            pages=pages,
            extraction_meta={"strategy": "pypdf", "text_per_page": int(len(text) / max(pages, 1))},
        )
