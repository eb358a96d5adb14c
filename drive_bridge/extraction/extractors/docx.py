from __future__ import annotations

import io
import zipfile

import docx  # python-docx
from docx.opc.exceptions import PackageNotFoundError

from drive_bridge.errors import CorruptDocumentError
from drive_bridge.extraction.extractors.base import Extractor, normalize_text
from drive_bridge.extraction.types import ExtractResult, FormatTag, RemoteFile


class DocxExtractor(Extractor):
    format = FormatTag.DOCX

    def extract(self, *, item: RemoteFile, data: bytes) -> ExtractResult:
        try:
            d = docx.Document(io.BytesIO(data))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
            raise CorruptDocumentError(f"Could not read DOCX '{item.name}': {e}") from e

        parts: list[str] = []
        for p in d.paragraphs:
            if p.text and p.text.strip():
                parts.append(p.text)
        text = normalize_text("\n\n".join(parts))
        return ExtractResult(
            text=text,
            pages=None,
            extraction_meta={"strategy": "docx", "paragraphs": len(parts)},
        )
