"""Small helpers shared by the server: stream copying and logging."""

from __future__ import annotations

import logging
import sys
from functools import partial
from typing import BinaryIO

_CHUNK_SIZE = 64 * 1024


class _StdoutHandler(logging.Handler):
    """Write records to whatever sys.stdout currently is."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            sys.stdout.write(self.format(record) + "\n")
            sys.stdout.flush()
        except Exception:
            self.handleError(record)


def _build_logger() -> logging.Logger:
    log = logging.getLogger("funchost")
    if not log.handlers:
        handler = _StdoutHandler()
        handler.setFormatter(
            logging.Formatter(
                "[serverless]%(asctime)s %(message)s", datefmt="%Y/%m/%d %H:%M:%S"
            )
        )
        log.addHandler(handler)
    log.setLevel(logging.INFO)
    log.propagate = False
    return log


logger = _build_logger()


def copy_file(src: BinaryIO, dst: BinaryIO) -> int:
    """Copy everything from src to dst and return the number of bytes copied."""
    total = 0
    for chunk in iter(partial(src.read, _CHUNK_SIZE), b""):
        dst.write(chunk)
        total += len(chunk)
    return total


def info(msg: str, *args: object) -> None:
    """Log a printf-style message at info level."""
    logger.info(msg % args if args else msg)