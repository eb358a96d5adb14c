from __future__ import annotations

import csv
import io
import zipfile
from datetime import date, datetime, time
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from drive_bridge.errors import CorruptDocumentError
from drive_bridge.extraction.extractors.base import Extractor
from drive_bridge.extraction.types import ExtractResult, FormatTag, RemoteFile


def sheet_banner(name: str) -> str:
    return f"--- Sheet: {name} ---"


def format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def rows_to_csv(rows: list[list[str]]) -> str:
    # Trailing blank rows are only the sheet's used-range padding
    while rows and not any(rows[-1]):
        rows.pop()
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    for row in rows:
        if any(row):
            writer.writerow(row)
        else:
            # csv writes a lone empty field as '""'
            buf.write("," * (len(row) - 1) + "\n")
    return buf.getvalue().rstrip("\n")


class XlsxExtractor(Extractor):
    """Render every sheet as CSV under a ``--- Sheet: <name> ---`` banner."""

    format = FormatTag.XLSX

    def extract(self, *, item: RemoteFile, data: bytes) -> ExtractResult:
        try:
            wb = load_workbook(io.BytesIO(data), data_only=True)
        except (zipfile.BadZipFile, InvalidFileException, KeyError, ValueError, OSError) as e:
            raise CorruptDocumentError(f"Could not read XLSX '{item.name}': {e}") from e

        sheet_names = list(wb.sheetnames)
        try:
            sections: list[str] = []
            row_count = 0
            for sheet_name in sheet_names:
                ws = wb[sheet_name]
                if not isinstance(ws, Worksheet):
                    # Chartsheets hold no cells
                    sections.append(f"{sheet_banner(sheet_name)}\n")
                    continue
                rows = [[format_cell(cell) for cell in row] for row in ws.iter_rows(values_only=True)]
                row_count += len(rows)
                sections.append(f"{sheet_banner(sheet_name)}\n{rows_to_csv(rows)}")
        finally:
            wb.close()

        return ExtractResult(
            text="\n\n".join(sections),
            pages=None,
            extraction_meta={
                "strategy": "openpyxl",
                "sheets": sheet_names,
                "rows": row_count,
            },
        )
