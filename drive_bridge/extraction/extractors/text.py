from __future__ import annotations

from drive_bridge.extraction.extractors.base import Extractor
from drive_bridge.extraction.types import ExtractResult, FormatTag, RemoteFile


def decode_utf8(data: bytes) -> str:
    # Invalid sequences become U+FFFD; valid UTF-8 round-trips unchanged.
    return data.decode("utf-8", errors="replace")


class TextExtractor(Extractor):
    format = FormatTag.TXT

    def extract(self, *, item: RemoteFile, data: bytes) -> ExtractResult:
        return ExtractResult(
            text=decode_utf8(data),
            pages=None,
            extraction_meta={"strategy": "text", "bytes": len(data)},
        )
