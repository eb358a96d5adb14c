"""Extraction dispatcher: metadata -> detect -> fetch -> extract -> result.

States move strictly forward:

    IDLE -> METADATA_FETCHED -> CONTENT_FETCHED -> EXTRACTED -> RESPONDED

with FAILED reachable from any of them. No step is retried; the first
failure ends the run and is re-raised to the caller with the state it
happened in. Unsupported content types fail before any content download.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from drive_bridge.config import DRIVE_GOOGLE_DOC_MODE
from drive_bridge.errors import CorruptDocumentError, DriveBridgeError
from drive_bridge.extraction.detector import require_format
from drive_bridge.extraction.extractors.base import Extractor
from drive_bridge.extraction.extractors.docx import DocxExtractor
from drive_bridge.extraction.extractors.google_doc import GoogleDocExtractor
from drive_bridge.extraction.extractors.pdf import PdfExtractor
from drive_bridge.extraction.extractors.text import TextExtractor
from drive_bridge.extraction.extractors.xlsx import XlsxExtractor
from drive_bridge.extraction.types import (
    DispatchState,
    ExtractionResult,
    ExtractResult,
    FormatTag,
    RemoteFile,
)

logger = logging.getLogger(__name__)

StateObserver = Callable[[DispatchState], None]

_NEXT_STATE = {
    DispatchState.IDLE: DispatchState.METADATA_FETCHED,
    DispatchState.METADATA_FETCHED: DispatchState.CONTENT_FETCHED,
    DispatchState.CONTENT_FETCHED: DispatchState.EXTRACTED,
    DispatchState.EXTRACTED: DispatchState.RESPONDED,
}


class ContentFetcher(Protocol):
    async def get_metadata(self, file_id: str) -> RemoteFile: ...

    async def get_raw_content(self, file_id: str) -> bytes: ...

    async def get_exported_content(self, file_id: str, target_mime: str = ...) -> bytes: ...

    async def get_structured_content(self, file_id: str) -> dict[str, Any]: ...


def default_extractors() -> dict[FormatTag, Extractor]:
    extractors: list[Extractor] = [
        PdfExtractor(),
        TextExtractor(),
        DocxExtractor(),
        XlsxExtractor(),
        GoogleDocExtractor(),
    ]
    return {ex.format: ex for ex in extractors}


class _Run:
    """State tracking for a single dispatch."""

    def __init__(self, file_id: str, observer: StateObserver | None) -> None:
        self.file_id = file_id
        self.state = DispatchState.IDLE
        self._observer = observer
        self._started = time.monotonic()

    def _emit(self, state: DispatchState) -> None:
        self.state = state
        logger.debug("file=%s state=%s", self.file_id, state)
        if self._observer is not None:
            self._observer(state)

    def advance(self, state: DispatchState) -> None:
        expected = _NEXT_STATE.get(self.state)
        if state is not expected:
            raise RuntimeError(f"Illegal dispatcher transition {self.state} -> {state}")
        self._emit(state)

    def fail(self, err: DriveBridgeError) -> None:
        if err.state is None:
            err.state = self.state
        logger.warning(
            "Extraction failed file=%s state=%s error=%s: %s",
            self.file_id,
            err.state,
            type(err).__name__,
            err.message,
        )
        self._emit(DispatchState.FAILED)

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)


class ExtractionDispatcher:
    def __init__(
        self,
        *,
        extractors: Mapping[FormatTag, Extractor] | None = None,
        google_doc_mode: str = DRIVE_GOOGLE_DOC_MODE,
        observer: StateObserver | None = None,
    ) -> None:
        self._extractors = dict(extractors) if extractors is not None else default_extractors()
        if google_doc_mode not in ("export", "structured"):
            raise ValueError(f"Unknown google_doc_mode: {google_doc_mode!r}")
        self._google_doc_mode = google_doc_mode
        self._observer = observer

    async def extract(self, file_id: str, *, fetcher: ContentFetcher) -> ExtractionResult:
        run = _Run(file_id, self._observer)
        try:
            item = await fetcher.get_metadata(file_id)
            run.advance(DispatchState.METADATA_FETCHED)

            tag = require_format(item.mime_type)
            content = await self._fetch_content(fetcher, item, tag)
            run.advance(DispatchState.CONTENT_FETCHED)

            exr = await asyncio.to_thread(self._run_strategy, item, tag, content)
            run.advance(DispatchState.EXTRACTED)

            result = ExtractionResult(file=item, format=tag, text=exr.text)
            run.advance(DispatchState.RESPONDED)
        except DriveBridgeError as e:
            run.fail(e)
            raise

        logger.info(
            "Extracted file=%s type=%s chars=%d elapsed_ms=%d meta=%s",
            file_id,
            tag,
            len(result.text),
            run.elapsed_ms,
            exr.extraction_meta,
        )
        return result

    async def _fetch_content(
        self, fetcher: ContentFetcher, item: RemoteFile, tag: FormatTag
    ) -> bytes | dict[str, Any]:
        if tag is not FormatTag.GOOGLE_DOC:
            return await fetcher.get_raw_content(item.id)
        if self._google_doc_mode == "structured":
            return await fetcher.get_structured_content(item.id)
        return await fetcher.get_exported_content(item.id, "text/plain")

    def _run_strategy(self, item: RemoteFile, tag: FormatTag, content: bytes | dict[str, Any]) -> ExtractResult:
        extractor = self._extractors.get(tag)
        if extractor is None:
            raise CorruptDocumentError(f"No extractor registered for {tag}")
        try:
            if isinstance(content, dict):
                if not isinstance(extractor, GoogleDocExtractor):
                    raise CorruptDocumentError(f"Structured content is not valid input for {tag}")
                return extractor.extract_document(item=item, document=content)
            return extractor.extract(item=item, data=content)
        except DriveBridgeError:
            raise
        except Exception as e:
            # Parser libraries raise a wide range of exception types on bad input
            raise CorruptDocumentError(f"Could not extract {tag} content from '{item.name}': {e}") from e
