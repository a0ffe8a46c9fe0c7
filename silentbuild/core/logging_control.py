"""Host logging suppression — an optional capability chosen at configuration time.

While the engine is active the host's own log chatter is turned down:
completely in strict mode, to errors only in relaxed mode.  Backends that
cannot do this use ``NoOpLoggingBackend``.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

# "off" is one step above CRITICAL so nothing passes
_LEVELS: dict[str, int] = {
    "off": logging.CRITICAL + 1,
    "error": logging.ERROR,
}


class UnknownLoggingBackendError(ValueError):
    """Raised when the configured logging backend name is not recognised."""


@runtime_checkable
class LoggingBackend(Protocol):
    """Capability to turn the host's logging down and back up."""

    def suppress(self, level_name: str) -> None:
        ...

    def restore(self) -> None:
        ...


class NoOpLoggingBackend:
    """Leaves host logging untouched."""

    def suppress(self, level_name: str) -> None:
        return None

    def restore(self) -> None:
        return None


class StdlibLoggingBackend:
    """Adjusts a stdlib logger's level (the root logger by default).

    ``restore`` is idempotent and only acts after a successful ``suppress``.
    """

    def __init__(self, logger_name: str | None = None) -> None:
        self._target = logging.getLogger(logger_name)
        self._previous_level: int | None = None

    def suppress(self, level_name: str) -> None:
        try:
            level = _LEVELS[level_name]
        except KeyError:
            raise ValueError(f"Unknown logging level name: {level_name!r}") from None
        if self._previous_level is None:
            self._previous_level = self._target.level
        self._target.setLevel(level)

    def restore(self) -> None:
        if self._previous_level is None:
            return
        self._target.setLevel(self._previous_level)
        self._previous_level = None


def create_logging_backend(name: str) -> LoggingBackend:
    """Build the backend named in configuration (``stdlib`` or ``none``)."""
    key = name.strip().lower()
    if key == "stdlib":
        return StdlibLoggingBackend()
    if key == "none":
        return NoOpLoggingBackend()
    raise UnknownLoggingBackendError(f"Unknown logging backend: {name!r}")
