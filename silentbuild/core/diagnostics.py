"""Failure-text helpers for failed build steps.

Plugins attach their useful output in different places: some put the full
compiler output into a ``long_message`` several causes deep, others only
print it to the console (which the engine has redirected into the build
log).  These helpers dig the text out of both.
"""

from __future__ import annotations

import logging
import os
from collections import deque
from pathlib import Path

from silentbuild.models.events import FailureInfo

logger = logging.getLogger(__name__)

MAX_CAUSE_DEPTH = 5
DEFAULT_TAIL_LINES = 200

_DIAGNOSTIC_MARKERS = (
    "parse error",
    "cannot find symbol",
    "error:",
    "failed with message",
    "not found",
    "no such",
    "syntax error",
    "expected one of",
)


def extract_failure_output(failure: FailureInfo | None) -> str | None:
    """Return the most useful text attached to a step failure.

    Walks at most five levels of the cause chain looking for a non-empty
    ``long_message``; falls back to the top-level ``message``.
    """
    cause = failure
    depth = 0
    while cause is not None and depth < MAX_CAUSE_DEPTH:
        if cause.long_message:
            return cause.long_message
        cause = cause.cause
        depth += 1
    return failure.message if failure is not None else None


def looks_like_diagnostic_line(line: str | None) -> bool:
    """Heuristic: does *line* read like an error message (not a stack frame)?"""
    if line is None:
        return False
    trimmed = line.strip()
    if not trimmed:
        return False
    if trimmed.startswith("at ") or trimmed.startswith("..."):
        return False
    if trimmed.startswith("(line "):
        return True
    lower = trimmed.lower()
    return any(marker in lower for marker in _DIAGNOSTIC_MARKERS)


def read_build_log_tail(log_file: Path | None, max_lines: int = DEFAULT_TAIL_LINES) -> list[str]:
    """Return the last *max_lines* lines of *log_file*, or [] if unreadable."""
    if log_file is None or not log_file.is_file():
        return []
    try:
        with open(log_file, encoding="utf-8", errors="replace") as fh:
            return [line.rstrip("\r\n") for line in deque(fh, maxlen=max_lines)]
    except OSError as exc:
        logger.debug("Cannot read build log %s: %s", log_file, exc)
        return []


def extract_failure_hint_from_build_log(
    log_file: Path | None, max_lines: int = DEFAULT_TAIL_LINES
) -> str | None:
    """Return the last diagnostic-looking line in the tail of the build log."""
    for line in reversed(read_build_log_tail(log_file, max_lines)):
        candidate = line.strip()
        if looks_like_diagnostic_line(candidate):
            return candidate
    return None


def read_build_log_from(log_file: Path | None, offset: int) -> tuple[list[str], int]:
    """Return the lines appended to *log_file* after byte *offset*.

    The second element is the offset to resume from next time.  A file
    shorter than *offset* (truncated by a new session) is read from the start.
    """
    if log_file is None or not log_file.is_file():
        return [], offset
    try:
        with open(log_file, "rb") as fh:
            fh.seek(0, os.SEEK_END)
            size = fh.tell()
            start = offset if offset <= size else 0
            fh.seek(start)
            data = fh.read()
    except OSError as exc:
        logger.debug("Cannot read build log %s: %s", log_file, exc)
        return [], offset
    text = data.decode("utf-8", errors="replace")
    return text.splitlines(), start + len(data)
