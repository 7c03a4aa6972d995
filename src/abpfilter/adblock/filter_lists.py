"""
Filter list reading.

Reads raw rule lines from filter-list files on disk. Parsing happens in the
builders; this module only yields non-empty lines.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

logger = logging.getLogger(__name__)


def read_filter_lines(path: Path | str) -> list[str]:
    """Read the non-empty lines of one filter list.

    Raises:
        OSError: The file cannot be read.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            lines = [line.rstrip("\r\n") for line in f]
    except OSError as e:
        logger.warning("Failed to read filter list %s: %s", path, e)
        raise

    lines = [line for line in lines if line.strip()]
    logger.debug("Read filter list: %s (%d lines)", path, len(lines))
    return lines


def iter_filter_lines(paths: Iterable[Path | str]) -> Iterator[str]:
    """Yield the lines of several filter lists in order."""
    for path in paths:
        yield from read_filter_lines(path)
