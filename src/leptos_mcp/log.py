from __future__ import annotations

import logging
import sys
from typing import TextIO


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    # stdout carries the protocol, so log records always go to stderr
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=stream or sys.stderr,
        force=True,
    )
