"""Async wrapper around the Google Drive v3 and Docs v1 API clients.

googleapiclient is blocking, so every call runs in a worker thread (the same
way ingestion code offloads blocking storage I/O) and is optionally bounded
by ``DRIVE_FETCH_TIMEOUT_SECONDS``. Provider failures are translated into the
``drive_bridge.errors`` taxonomy here and nowhere else.
"""

from __future__ import annotations

import asyncio
import http.client
import io
import json
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from googleapiclient.errors import HttpError
from googleapiclient.http import HttpRequest, MediaIoBaseDownload

from drive_bridge.config import DRIVE_DOWNLOAD_CHUNK_BYTES, DRIVE_FETCH_TIMEOUT_SECONDS
from drive_bridge.drive import query as q
from drive_bridge.errors import (
    DriveBridgeError,
    ExportUnsupportedError,
    FetchError,
    NotFoundError,
    UnauthorizedError,
)
from drive_bridge.extraction.types import RemoteFile
from drive_bridge.session import DriveSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

METADATA_FIELDS = "id, name, mimeType, size, modifiedTime"
FOLDER_LIST_FIELDS = "files(id, name, modifiedTime)"
FILE_LIST_FIELDS = "files(id, name, mimeType, modifiedTime, size)"

# Reasons Drive reports when a native file cannot be exported as requested
_EXPORT_REJECT_REASONS = frozenset(
    {"cannotExportFile", "exportSizeLimitExceeded", "badRequest", "invalidExportFormat", "fileNotExportable"}
)


def _error_reasons(err: HttpError) -> set[str]:
    reasons: set[str] = set()
    details = getattr(err, "error_details", None)
    if isinstance(details, list):
        reasons.update(str(d["reason"]) for d in details if isinstance(d, dict) and d.get("reason"))
    try:
        body = json.loads(err.content.decode("utf-8"))
    except (ValueError, AttributeError):
        return reasons
    for e in body.get("error", {}).get("errors", []) if isinstance(body, dict) else []:
        if isinstance(e, dict) and e.get("reason"):
            reasons.add(str(e["reason"]))
    return reasons


def map_http_error(err: HttpError, *, action: str, file_id: str | None = None, export: bool = False) -> DriveBridgeError:
    status = int(getattr(err.resp, "status", 0) or 0)
    reasons = _error_reasons(err)
    if status == 401:
        return UnauthorizedError("Drive rejected the session credentials")
    if status == 404:
        return NotFoundError(f"File not found: {file_id}" if file_id else "Not found")
    if export and status in (400, 403) and reasons & _EXPORT_REJECT_REASONS:
        return ExportUnsupportedError(f"Drive cannot export file {file_id}: {', '.join(sorted(reasons))}")
    detail = ", ".join(sorted(reasons)) or err.reason or "unknown error"
    return FetchError(f"Drive API error {status} during {action}: {detail}")


class DriveClient:
    """Per-request handle on one session's Drive and Docs resources."""

    def __init__(
        self,
        *,
        drive: Any,
        docs: Any | None = None,
        timeout: float = DRIVE_FETCH_TIMEOUT_SECONDS,
        chunk_size: int = DRIVE_DOWNLOAD_CHUNK_BYTES,
    ) -> None:
        self._drive = drive
        self._docs = docs
        self._timeout = timeout
        self._chunk_size = chunk_size

    @classmethod
    def for_session(cls, session: DriveSession, **kwargs: Any) -> DriveClient:
        return cls(drive=session.build_drive(), docs=session.build_docs(), **kwargs)

    async def _call(
        self,
        fn: Callable[[], T],
        *,
        action: str,
        file_id: str | None = None,
        export: bool = False,
    ) -> T:
        try:
            if self._timeout > 0:
                return await asyncio.wait_for(asyncio.to_thread(fn), timeout=self._timeout)
            return await asyncio.to_thread(fn)
        except DriveBridgeError:
            raise
        except HttpError as e:
            raise map_http_error(e, action=action, file_id=file_id, export=export) from e
        except RefreshError as e:
            raise UnauthorizedError(f"Session credentials could not be refreshed: {e}") from e
        except TimeoutError as e:
            raise FetchError(f"Timed out after {self._timeout:g}s during {action}") from e
        except (TransportError, OSError, httplib2.HttpLib2Error, http.client.HTTPException) as e:
            raise FetchError(f"Transport failure during {action}: {e}") from e

    def _drain(self, request: HttpRequest) -> bytes:
        """Run a chunked download to completion and return every byte."""
        with io.BytesIO() as buf:
            downloader = MediaIoBaseDownload(buf, request, chunksize=self._chunk_size)
            done = False
            chunks = 0
            while not done:
                _status, done = downloader.next_chunk()
                chunks += 1
            logger.debug("Drained %d bytes in %d chunk(s)", buf.tell(), chunks)
            return buf.getvalue()

    # -- Content ---------------------------------------------------------------

    async def get_metadata(self, file_id: str) -> RemoteFile:
        data = await self._call(
            lambda: self._drive.files().get(fileId=file_id, fields=METADATA_FIELDS).execute(),
            action="metadata fetch",
            file_id=file_id,
        )
        return RemoteFile.from_api(data)

    async def get_raw_content(self, file_id: str) -> bytes:
        return await self._call(
            lambda: self._drain(self._drive.files().get_media(fileId=file_id)),
            action="content download",
            file_id=file_id,
        )

    async def get_exported_content(self, file_id: str, target_mime: str = "text/plain") -> bytes:
        return await self._call(
            lambda: self._drain(self._drive.files().export_media(fileId=file_id, mimeType=target_mime)),
            action="export",
            file_id=file_id,
            export=True,
        )

    async def get_structured_content(self, file_id: str) -> dict[str, Any]:
        if self._docs is None:
            raise FetchError("Docs API is not available for this session")
        docs = self._docs
        return await self._call(
            lambda: docs.documents().get(documentId=file_id).execute(),
            action="structured document fetch",
            file_id=file_id,
        )

    # -- Listing ---------------------------------------------------------------

    async def _list(self, query: str, *, fields: str, limit: int | None, action: str) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"q": query, "fields": fields}
        if limit is not None:
            params["pageSize"] = limit
        data = await self._call(lambda: self._drive.files().list(**params).execute(), action=action)
        return list(data.get("files", []))

    async def list_folders(self) -> list[dict[str, Any]]:
        return await self._list(q.folders_query(), fields=FOLDER_LIST_FIELDS, limit=None, action="folder listing")

    async def list_folder_files(self, folder_id: str, *, limit: int) -> list[dict[str, Any]]:
        return await self._list(
            q.folder_files_query(folder_id), fields=FILE_LIST_FIELDS, limit=limit, action="file listing"
        )

    async def search_files(self, term: str, *, limit: int) -> list[dict[str, Any]]:
        return await self._list(q.search_files_query(term), fields=FILE_LIST_FIELDS, limit=limit, action="file search")

    async def search_folders(self, term: str, *, limit: int) -> list[dict[str, Any]]:
        return await self._list(
            q.search_folders_query(term), fields=FOLDER_LIST_FIELDS, limit=limit, action="folder search"
        )
