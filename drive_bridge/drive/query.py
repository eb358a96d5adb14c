"""Builders for Drive ``files.list`` query strings.

User input is always passed through ``escape_query_value`` before it is
placed inside a quoted literal, so a term like ``x' or name contains '``
stays a literal instead of extending the query.
"""

from __future__ import annotations

from drive_bridge.extraction.detector import FOLDER_MIME

NOT_TRASHED = "trashed = false"
IS_FOLDER = f"mimeType = '{FOLDER_MIME}'"
IS_NOT_FOLDER = f"mimeType != '{FOLDER_MIME}'"


def escape_query_value(value: str) -> str:
    # Backslash first, or the quote escapes would be doubled
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _literal(value: str) -> str:
    return f"'{escape_query_value(value)}'"


def folders_query() -> str:
    return f"{IS_FOLDER} and {NOT_TRASHED}"


def folder_files_query(folder_id: str) -> str:
    return f"{_literal(folder_id)} in parents and {NOT_TRASHED}"


def search_files_query(term: str) -> str:
    return f"name contains {_literal(term)} and {IS_NOT_FOLDER} and {NOT_TRASHED}"


def search_folders_query(term: str) -> str:
    return f"name contains {_literal(term)} and {IS_FOLDER} and {NOT_TRASHED}"
