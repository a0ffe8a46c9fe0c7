"""Console redirection — captures ambient build output into a log file.

The process streams are reached only through a ``StreamTarget`` so tests
(and embedding hosts) can inject their own.  The default ``SysStreams``
swaps ``sys.stdout`` / ``sys.stderr``.

The log file is created lazily on first write, so modules that never print
leave no empty log behind.  A write failure is latched once: the first
failing writer restores the original streams, closes the sink and reports
a passthrough diagnostic; nothing is retried.
"""

from __future__ import annotations

import io
import logging
import sys
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Protocol, TextIO, runtime_checkable

from silentbuild.core.build_state import AtomicFlag

logger = logging.getLogger(__name__)


@runtime_checkable
class StreamTarget(Protocol):
    """Access to the pair of process output streams."""

    def get(self) -> tuple[TextIO, TextIO]:
        """Return the current ``(out, err)`` streams."""
        ...

    def set(self, out: TextIO, err: TextIO) -> None:
        """Install new ``(out, err)`` streams."""
        ...


class SysStreams:
    """``StreamTarget`` backed by ``sys.stdout`` and ``sys.stderr``."""

    def get(self) -> tuple[TextIO, TextIO]:
        return sys.stdout, sys.stderr

    def set(self, out: TextIO, err: TextIO) -> None:
        sys.stdout = out
        sys.stderr = err


class LazyFileSink(io.TextIOBase):
    """Text stream that opens its target file on the first write.

    Code that treats ``sys.stdout`` as a real console stream keeps working
    while redirected: ``buffer`` accepts bytes for the same file, and
    ``fileno()`` hands out the log file's descriptor (for subprocesses).

    Parameters
    ----------
    path:
        Log file to create (parent directories included).
    on_failure:
        Called with the ``OSError`` when opening, writing or flushing fails.
    fallback:
        Stream that receives text the file could not take, and anything
        written after the sink was closed.
    """

    def __init__(
        self,
        path: Path,
        on_failure: Callable[[OSError], None],
        fallback: TextIO | None = None,
    ) -> None:
        super().__init__()
        self._path = path
        self._on_failure = on_failure
        self._fallback = fallback
        self._handle: TextIO | None = None
        self._lock = threading.Lock()
        self._sink_closed = False
        self._binary = _SinkBinaryView(self)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def opened(self) -> bool:
        return self._handle is not None

    @property
    def encoding(self) -> str:
        return "utf-8"

    @property
    def buffer(self) -> _SinkBinaryView:
        """Byte-level view writing to the same log file."""
        return self._binary

    def writable(self) -> bool:
        return True

    def isatty(self) -> bool:
        return False

    def _open(self) -> TextIO:
        # Caller holds _lock
        if self._handle is None:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._handle = open(self._path, "w", encoding="utf-8", buffering=1)
        return self._handle

    def _forward(self, text: str) -> int:
        if self._fallback is None:
            return len(text)
        return self._fallback.write(text)

    def _forward_bytes(self, data: bytes) -> int:
        if self._fallback is None:
            return len(data)
        raw = getattr(self._fallback, "buffer", None)
        if raw is not None:
            return raw.write(data)
        self._fallback.write(data.decode("utf-8", errors="replace"))
        return len(data)

    def write(self, text: str) -> int:
        if self._sink_closed:
            return self._forward(text)
        try:
            with self._lock:
                self._open().write(text)
        except OSError as exc:
            self._on_failure(exc)
            return self._forward(text)
        return len(text)

    def write_bytes(self, data: bytes) -> int:
        """Append raw bytes after any pending text."""
        if self._sink_closed:
            return self._forward_bytes(data)
        try:
            with self._lock:
                handle = self._open()
                handle.flush()
                handle.buffer.write(data)
                handle.buffer.flush()
        except OSError as exc:
            self._on_failure(exc)
            return self._forward_bytes(data)
        return len(data)

    def fileno(self) -> int:
        """Descriptor of the log file, or of the fallback once redirection failed."""
        if not self._sink_closed:
            try:
                with self._lock:
                    handle = self._open()
                    handle.flush()
                    return handle.fileno()
            except OSError as exc:
                self._on_failure(exc)
        if self._fallback is None:
            raise io.UnsupportedOperation("fileno")
        return self._fallback.fileno()

    def flush(self) -> None:
        if self._sink_closed:
            return
        try:
            with self._lock:
                if self._handle is not None:
                    self._handle.flush()
        except OSError as exc:
            self._on_failure(exc)

    def close(self) -> None:
        with self._lock:
            if self._sink_closed:
                return
            self._sink_closed = True
            handle, self._handle = self._handle, None
        if handle is not None:
            try:
                handle.close()
            except OSError as exc:
                logger.debug("Closing %s failed: %s", self._path, exc)
        super().close()


class _SinkBinaryView(io.BufferedIOBase):
    """``sys.stdout.buffer`` stand-in that feeds a ``LazyFileSink``."""

    def __init__(self, sink: LazyFileSink) -> None:
        super().__init__()
        self._sink = sink

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        return self._sink.write_bytes(bytes(data))

    def flush(self) -> None:
        self._sink.flush()

    def fileno(self) -> int:
        return self._sink.fileno()


class ConsoleRedirector:
    """Swaps the process streams to a lazily-created build log file.

    Parameters
    ----------
    on_diagnostic:
        Receives the one-line reason when redirection fails.
    streams:
        Where the process streams live.  Defaults to ``SysStreams``.
    """

    def __init__(
        self,
        on_diagnostic: Callable[[str], None],
        streams: StreamTarget | None = None,
    ) -> None:
        self._on_diagnostic = on_diagnostic
        self._streams = streams or SysStreams()
        self._failed = AtomicFlag()
        self._original: tuple[TextIO, TextIO] | None = None
        self._sink: LazyFileSink | None = None
        self._log_file: Path | None = None

    @property
    def log_file(self) -> Path | None:
        """Path of the current build log, or None if none is active."""
        return self._log_file

    @property
    def is_redirected(self) -> bool:
        return self._sink is not None

    @property
    def log_opened(self) -> bool:
        """True once the current session has written to its build log."""
        return self._sink is not None and self._sink.opened

    @property
    def failed(self) -> bool:
        return bool(self._failed)

    def redirect_to_file(self, log_file: Path) -> None:
        """Capture the current streams and send both to *log_file*."""
        self._original = self._streams.get()
        self._log_file = log_file
        self._sink = LazyFileSink(log_file, self._on_write_failure, fallback=self._original[0])
        self._streams.set(self._sink, self._sink)
        logger.debug("Console redirected to %s", log_file)

    def flush(self) -> None:
        if self._sink is not None:
            self._sink.flush()

    def restore(self) -> None:
        """Put the original streams back and close the sink.  Idempotent."""
        if self._original is not None:
            self._streams.set(*self._original)
        sink, self._sink = self._sink, None
        if sink is not None:
            sink.close()

    def reset(self) -> None:
        """Restore and forget everything, ready for a new session."""
        self.restore()
        self._original = None
        self._log_file = None
        self._failed.set(False)

    def _on_write_failure(self, exc: OSError) -> None:
        if not self._failed.compare_and_set(False, True):
            return
        self.restore()
        self._log_file = None
        self._on_diagnostic(
            f"build-log redirect failed: {exc}. Continuing with console output."
            " Set MSE_ACTIVE=off to disable."
        )
