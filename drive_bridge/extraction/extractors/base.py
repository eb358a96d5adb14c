from __future__ import annotations

from abc import ABC, abstractmethod

from drive_bridge.extraction.types import ExtractResult, FormatTag, RemoteFile


class Extractor(ABC):
    format: FormatTag

    @abstractmethod
    def extract(self, *, item: RemoteFile, data: bytes) -> ExtractResult: ...


def normalize_text(text: str) -> str:
    """Drop NULs, cap blank-line runs at two, strip the ends."""
    if not text:
        return ""
    text = text.replace("\x00", "")
    while "\n\n\n\n" in text:
        text = text.replace("\n\n\n\n", "\n\n\n")
    return text.strip()
