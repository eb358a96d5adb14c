from __future__ import annotations

import argparse

from drive_bridge.config import DRIVE_GOOGLE_DOC_MODE, DRIVE_FETCH_TIMEOUT_SECONDS


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="drive-bridge-extract",
        description="Extract plain text from a Google Drive file using application default credentials",
    )
    p.add_argument("file_id", help="Drive file id")
    p.add_argument(
        "--google-doc-mode",
        choices=("export", "structured"),
        default=DRIVE_GOOGLE_DOC_MODE,
        help="How native Google Docs are read (default from env DRIVE_GOOGLE_DOC_MODE)",
    )
    p.add_argument(
        "--format",
        dest="output_format",
        choices=("text", "json"),
        default="text",
        help="Print only the text, or the full JSON result",
    )
    p.add_argument(
        "--timeout",
        type=float,
        default=DRIVE_FETCH_TIMEOUT_SECONDS,
        help="Per-call timeout in seconds (0 = none)",
    )
    p.add_argument("--log-level", default="WARNING", help="Python logging level (INFO, DEBUG, ...)")
    return p
