"""Plain text from native Google Docs.

Two inputs are accepted: the ``text/plain`` export produced by Drive, or the
structured ``documents.get`` body from the Docs API. Both paths are pure.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import Any

from drive_bridge.errors import CorruptDocumentError
from drive_bridge.extraction.extractors.base import Extractor
from drive_bridge.extraction.extractors.text import decode_utf8
from drive_bridge.extraction.types import ExtractResult, FormatTag, RemoteFile


def _iter_runs(elements: Sequence[Mapping[str, Any]]) -> Iterator[str]:
    for element in elements:
        paragraph = element.get("paragraph")
        if paragraph is not None:
            for part in paragraph.get("elements", []):
                run = part.get("textRun")
                if run is not None:
                    yield run.get("content", "")
            continue

        table = element.get("table")
        if table is not None:
            for row in table.get("tableRows", []):
                for cell in row.get("tableCells", []):
                    yield from _iter_runs(cell.get("content", []))
            continue

        toc = element.get("tableOfContents")
        if toc is not None:
            yield from _iter_runs(toc.get("content", []))


def document_text(document: Mapping[str, Any]) -> str:
    """Concatenate every text run of the document body in order."""
    body = document.get("body")
    if not isinstance(body, Mapping):
        raise CorruptDocumentError("Document has no body")
    return "".join(_iter_runs(body.get("content", [])))


class GoogleDocExtractor(Extractor):
    format = FormatTag.GOOGLE_DOC

    def extract(self, *, item: RemoteFile, data: bytes) -> ExtractResult:
        return ExtractResult(
            text=decode_utf8(data),
            pages=None,
            extraction_meta={"strategy": "export"},
        )

    def extract_document(self, *, item: RemoteFile, document: Mapping[str, Any]) -> ExtractResult:
        return ExtractResult(
            text=document_text(document),
            pages=None,
            extraction_meta={"strategy": "structured", "revision_id": document.get("revisionId")},
        )
