"""Output formatter — renders build results into the ``MSE:`` line protocol.

Every emission is assembled into one string and written with a single
``write`` call under a lock, so blocks from concurrently building modules
never interleave.  Field order and wording (including singular/plural
truncation notices) are a compatibility contract with downstream parsers.

Protocol
--------
- ``MSE:SESSION_START`` : module count and requested goals
- ``MSE:OK`` / ``MSE:BUILD_FAILED`` : final outcome line
- ``MSE:FAIL``          : one failed build step
- ``MSE:TESTS``         : test counts plus up to 10 failure records
- ``MSE:ERR``           : up to 25 compiler diagnostics
- ``MSE:DETAIL``        : generic failure text, up to 20 lines
- ``MSE:TEST_OUTPUT`` / ``MSE:BUILD_LOG`` : where to look next
- ``MSE:PASSTHROUGH``   : the engine's own non-fatal diagnostics
"""

from __future__ import annotations

import re
import sys
import threading
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from silentbuild.models.results import CompilerError, FailureKind, TestSummary

if TYPE_CHECKING:
    from silentbuild.core.build_state import BuildState

PREFIX = "MSE:"
MAX_FAILURE_DETAILS = 10
MAX_COMPILER_ERRORS = 25
MAX_GENERIC_FAILURE_LINES = 20
DEFAULT_EXECUTION_PREFIX = "default-"

_LINE_BREAK = re.compile(r"\r?\n")


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


class OutputFormatter:
    """Writes protocol blocks to a fixed output stream.

    Parameters
    ----------
    out:
        Destination stream.  Defaults to the ``sys.stdout`` in effect when
        the formatter is created, so later console redirection never
        captures protocol lines.
    """

    def __init__(self, out: TextIO | None = None) -> None:
        self._out = out if out is not None else sys.stdout
        self._lock = threading.Lock()

    def _emit(self, block: str) -> None:
        with self._lock:
            self._out.write(block + "\n")
            self._out.flush()

    # ------------------------------------------------------------------
    # Session boundaries
    # ------------------------------------------------------------------

    def emit_session_start(self, module_count: int, goals: list[str] | None) -> None:
        goal_str = ",".join(goals) if goals else "<none>"
        self._emit(f"{PREFIX}SESSION_START modules={module_count} goals={goal_str}")

    def emit_ok(self, state: BuildState) -> None:
        self._emit(
            f"{PREFIX}OK modules={state.total_modules}"
            f"{_test_counts(state)} time={state.elapsed_seconds}s"
        )

    def emit_build_failed(self, state: BuildState) -> None:
        parts = [
            f"{PREFIX}BUILD_FAILED failed={state.failed_modules}",
            f" modules={state.total_modules}",
            _test_counts(state),
        ]
        if state.compiler_errors > 0:
            parts.append(f" compiler_errors={state.compiler_errors}")
        parts.append(f" time={state.elapsed_seconds}s")
        self._emit("".join(parts))

    # ------------------------------------------------------------------
    # Step failures
    # ------------------------------------------------------------------

    def emit_fail(
        self,
        plugin_id: str | None,
        goal: str | None,
        execution_id: str | None,
        module_id: str,
    ) -> None:
        line = f"{PREFIX}FAIL {plugin_id or 'unknown-plugin'}:{goal or 'unknown-goal'}"
        if execution_id and not execution_id.startswith(DEFAULT_EXECUTION_PREFIX):
            line += f" ({execution_id})"
        self._emit(f"{line} @ {module_id}")

    def emit_test_results(self, summary: TestSummary) -> None:
        lines = [
            f"{PREFIX}TESTS total={summary.total} passed={summary.passed}"
            f" failed={summary.failures} errors={summary.errors} skipped={summary.skipped}"
        ]
        details = summary.failure_details
        for failure in details[:MAX_FAILURE_DETAILS]:
            tag = "TEST_FAIL" if failure.kind == FailureKind.FAILURE else "TEST_ERROR"
            lines.append(f"{PREFIX}{tag} {failure.class_name}#{failure.method_name}")
            if failure.message:
                lines.append(f"  {failure.message}")
            if failure.stack_trace:
                lines.extend(f"  {line}" for line in _LINE_BREAK.split(failure.stack_trace))
        if len(details) > MAX_FAILURE_DETAILS:
            remaining = len(details) - MAX_FAILURE_DETAILS
            noun = _plural(remaining, "failure", "failures")
            lines.append(f"{PREFIX}TEST_TRUNCATED {remaining} more {noun} not shown")
        self._emit("\n".join(lines))

    def emit_compiler_errors(self, errors: list[CompilerError]) -> None:
        if not errors:
            return
        lines = [
            f"{PREFIX}ERR {e.file}:{e.line}:{e.column} {e.message}"
            for e in errors[:MAX_COMPILER_ERRORS]
        ]
        if len(errors) > MAX_COMPILER_ERRORS:
            remaining = len(errors) - MAX_COMPILER_ERRORS
            noun = _plural(remaining, "error", "errors")
            lines.append(f"{PREFIX}ERR_TRUNCATED {remaining} more {noun} not shown")
        self._emit("\n".join(lines))

    def emit_failure_details(self, details: str | None) -> None:
        """Emit free-form failure text as ``DETAIL`` lines.

        Blank lines are dropped, tabs become spaces and trailing whitespace
        is stripped.  Only the first 20 non-blank lines are shown.
        """
        if not details or not details.strip():
            return
        lines: list[str] = []
        total_non_blank = 0
        for raw in _LINE_BREAK.split(details):
            normalized = raw.replace("\t", " ").rstrip()
            if not normalized.strip():
                continue
            total_non_blank += 1
            if len(lines) < MAX_GENERIC_FAILURE_LINES:
                lines.append(f"{PREFIX}DETAIL {normalized}")
        if not lines:
            return
        if total_non_blank > len(lines):
            remaining = total_non_blank - len(lines)
            noun = _plural(remaining, "line", "lines")
            lines.append(f"{PREFIX}DETAIL_TRUNCATED {remaining} more {noun} not shown")
        self._emit("\n".join(lines))

    # ------------------------------------------------------------------
    # Auxiliary lines
    # ------------------------------------------------------------------

    def emit_test_output_paths(self, reports_dirs: Iterable[Path]) -> None:
        for reports_dir in reports_dirs:
            self._emit(f"{PREFIX}TEST_OUTPUT {Path(reports_dir).absolute()}")

    def emit_build_log(self, log_file: Path) -> None:
        self._emit(f"{PREFIX}BUILD_LOG {Path(log_file).absolute()}")

    def emit_passthrough(self, reason: str) -> None:
        self._emit(f"{PREFIX}PASSTHROUGH {reason}")


def _test_counts(state: BuildState) -> str:
    return (
        f" passed={state.test_passed} failed={state.test_failed}"
        f" errors={state.test_errors} skipped={state.test_skipped}"
    )
