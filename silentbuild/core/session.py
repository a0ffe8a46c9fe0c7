"""Per-run scratch state owned by the session state machine."""

from __future__ import annotations

import threading
from pathlib import Path

from silentbuild.core.build_state import BuildState
from silentbuild.core.diagnostics import read_build_log_from
from silentbuild.models.events import HostSession
from silentbuild.models.session import ParseKey

REDIRECT_TEST_OUTPUT_PROP = "maven.test.redirectTestOutputToFile"


class BuildSession:
    """Everything that lives exactly as long as one build run.

    Parameters
    ----------
    host:
        The orchestrator's session object; its ``user_properties`` receive
        the test-output override for the duration of the run.
    module_count:
        Number of modules in the build.
    goals:
        Requested goals, as given by the host.
    start_time:
        Epoch seconds; defaults to now.
    """

    def __init__(
        self,
        host: HostSession,
        module_count: int,
        goals: list[str] | None = None,
        start_time: float | None = None,
    ) -> None:
        self.host = host
        self.goals = list(goals or [])
        self.state = BuildState(module_count, start_time)
        self._parsed: set[ParseKey] = set()
        self._reports_dirs: dict[Path, None] = {}  # insertion-ordered set
        self._lock = threading.Lock()
        self._previous_redirect_test_output: str | None = None
        self._test_output_overridden = False
        self._log_offset = 0

    # ------------------------------------------------------------------
    # Report bookkeeping
    # ------------------------------------------------------------------

    def mark_parsed(self, key: ParseKey) -> bool:
        """Record *key*; return False if it was already consumed this session."""
        with self._lock:
            if key in self._parsed:
                return False
            self._parsed.add(key)
            return True

    def add_reports_dir(self, reports_dir: Path) -> None:
        with self._lock:
            self._reports_dirs[reports_dir] = None

    @property
    def reports_dirs(self) -> list[Path]:
        with self._lock:
            return list(self._reports_dirs)

    def take_unscanned_log_lines(self, log_file: Path | None, max_lines: int) -> list[str]:
        """Build-log lines written since the previous call this session.

        Each line is handed out once, so a diagnostic printed while one
        module built is never attributed to a later failure.  At most the
        last *max_lines* of the new portion are returned.
        """
        with self._lock:
            lines, self._log_offset = read_build_log_from(log_file, self._log_offset)
        return lines[-max_lines:] if max_lines > 0 else []

    @property
    def parsed_keys(self) -> frozenset[ParseKey]:
        with self._lock:
            return frozenset(self._parsed)

    # ------------------------------------------------------------------
    # Host configuration override
    # ------------------------------------------------------------------

    def suppress_test_output(self) -> None:
        """Force test runners to write their console output to files."""
        props = self.host.user_properties
        if props is None:
            return
        self._previous_redirect_test_output = props.get(REDIRECT_TEST_OUTPUT_PROP)
        props[REDIRECT_TEST_OUTPUT_PROP] = "true"
        self._test_output_overridden = True

    def restore_test_output(self) -> None:
        """Undo ``suppress_test_output``.  Idempotent."""
        if not self._test_output_overridden:
            return
        self._test_output_overridden = False
        props = self.host.user_properties
        if props is None:
            return
        if self._previous_redirect_test_output is not None:
            props[REDIRECT_TEST_OUTPUT_PROP] = self._previous_redirect_test_output
        else:
            props.pop(REDIRECT_TEST_OUTPUT_PROP, None)
        self._previous_redirect_test_output = None
