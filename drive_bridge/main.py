from __future__ import annotations

import asyncio
import json
import logging
import sys

import uvicorn

from drive_bridge.cli import build_parser
from drive_bridge.config import HOST, PORT
from drive_bridge.drive.client import DriveClient
from drive_bridge.errors import DriveBridgeError, UnsupportedTypeError
from drive_bridge.extraction.dispatcher import ExtractionDispatcher
from drive_bridge.logging_config import setup_logging
from drive_bridge.session import adc_session

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_UNSUPPORTED = 2


async def _amain(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level.upper())
    logger = logging.getLogger("drive_bridge.cli")

    dispatcher = ExtractionDispatcher(google_doc_mode=args.google_doc_mode)
    try:
        session = adc_session()
        await asyncio.to_thread(session.ensure_fresh)
        client = DriveClient.for_session(session, timeout=args.timeout)
        result = await dispatcher.extract(args.file_id, fetcher=client)
    except UnsupportedTypeError as e:
        logger.error("%s", e.message)
        return EXIT_UNSUPPORTED
    except DriveBridgeError as e:
        logger.error("%s: %s", type(e).__name__, e.message)
        return EXIT_FAILED

    if args.output_format == "json":
        payload = {
            "file": {"name": result.file.name, "id": result.file.id},
            "type": str(result.format),
            "text": result.text,
        }
        sys.stdout.write(json.dumps(payload, ensure_ascii=False) + "\n")
    else:
        sys.stdout.write(result.text)
        if not result.text.endswith("\n"):
            sys.stdout.write("\n")
    return EXIT_OK


def main() -> None:
    raise SystemExit(asyncio.run(_amain()))


def serve() -> None:
    """Run the HTTP service. Logging is configured by the app lifespan."""
    uvicorn.run("drive_bridge.app:app", host=HOST, port=PORT, log_config=None)


if __name__ == "__main__":
    main()
