"""Report parser — turns test-report files and compiler output into records.

Two independent extraction paths:

1. ``parse_reports_dir``: reads ``TEST-*.xml`` files from a per-module
   report directory.  Documents are parsed with ``defusedxml`` so DOCTYPE,
   entity declarations and external references are rejected outright.
   Each file yields an explicit ``ReportParseResult``; a corrupt file is
   reported through the diagnostics callback and skipped, never fatal.
2. ``parse_compiler_output``: scans free-form text for
   ``path/File.java:[line,col] message`` diagnostics.

The parser is stateless; a fresh document parser is created per file.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from pathlib import Path
from xml.etree.ElementTree import Element, ParseError

from defusedxml import ElementTree as SafeElementTree
from pydantic import BaseModel, ConfigDict

from silentbuild.models.results import (
    EMPTY_SUMMARY,
    CompilerError,
    FailureKind,
    TestFailure,
    TestSummary,
)

logger = logging.getLogger(__name__)

REPORT_PREFIX = "TEST-"
REPORT_SUFFIX = ".xml"
MAX_STACK_TRACE_LINES = 20

COMPILER_ERROR_PATTERN = re.compile(
    r"^\s*(?:\[ERROR]\s+)?(.+?\.java):\[(\d+),(\d+)]\s+(.+)$",
    re.MULTILINE,
)

_LINE_BREAK = re.compile(r"\r?\n")
_INT_ATTR = re.compile(r"[+-]?[0-9]+")
_INT32_MIN, _INT32_MAX = -(2**31), 2**31 - 1

DiagnosticsCallback = Callable[[str], None]


class ReportParseResult(BaseModel):
    """Outcome of parsing a single report file: a summary or an error."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    summary: TestSummary | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ReportParser:
    """Stateless extraction of structured records from build artifacts."""

    # ------------------------------------------------------------------
    # Structured test reports
    # ------------------------------------------------------------------

    def parse_reports_dir(
        self,
        reports_dir: Path | str,
        diagnostics: DiagnosticsCallback | None = None,
    ) -> TestSummary:
        """Aggregate every ``TEST-*.xml`` file in *reports_dir*.

        Returns ``EMPTY_SUMMARY`` itself (not an equal copy) when the
        directory is missing, not a directory, or holds no report files.
        """
        report = diagnostics or (lambda _msg: None)
        files = self._list_report_files(Path(reports_dir))
        if not files:
            return EMPTY_SUMMARY

        total = failures = errors = skipped = 0
        details: list[TestFailure] = []

        for path in files:
            result = self.parse_report_file(path)
            if not result.ok:
                report(f"skipping corrupt report {result.file_name}: {result.error}")
                continue
            summary = result.summary
            total += summary.total
            failures += summary.failures
            errors += summary.errors
            skipped += summary.skipped
            details.extend(summary.failure_details)

        return TestSummary(
            total=total,
            failures=failures,
            errors=errors,
            skipped=skipped,
            failure_details=tuple(details),
        )

    def parse_report_file(self, path: Path) -> ReportParseResult:
        """Parse one report document into a ``ReportParseResult``."""
        try:
            root = SafeElementTree.parse(
                str(path), forbid_dtd=True, forbid_entities=True, forbid_external=True
            ).getroot()
        except (ParseError, ValueError, OSError) as exc:
            # defusedxml's DTDForbidden/EntitiesForbidden are ValueErrors
            logger.debug("Rejected report %s: %s", path, exc)
            return ReportParseResult(file_name=path.name, error=str(exc) or type(exc).__name__)

        return ReportParseResult(
            file_name=path.name,
            summary=TestSummary(
                total=_int_attr(root, "tests"),
                failures=_int_attr(root, "failures"),
                errors=_int_attr(root, "errors"),
                skipped=_int_attr(root, "skipped"),
                failure_details=tuple(_extract_failure_details(root)),
            ),
        )

    @staticmethod
    def _list_report_files(reports_dir: Path) -> list[Path]:
        if not reports_dir.is_dir():
            return []
        try:
            return sorted(
                p
                for p in reports_dir.iterdir()
                if p.is_file()
                and p.name.startswith(REPORT_PREFIX)
                and p.name.endswith(REPORT_SUFFIX)
            )
        except OSError as exc:
            logger.debug("Cannot list %s: %s", reports_dir, exc)
            return []

    # ------------------------------------------------------------------
    # Free-text helpers
    # ------------------------------------------------------------------

    @staticmethod
    def truncate_stack_trace(trace: str | None) -> str:
        """Normalise line endings and cap a stack trace at 20 lines.

        A truncated trace gets one extra ``... N more line(s)`` line.
        """
        if not trace:
            return ""
        lines = _LINE_BREAK.split(trace)
        while lines and lines[-1] == "":
            lines.pop()
        if len(lines) <= MAX_STACK_TRACE_LINES:
            return "\n".join(lines).strip()

        remaining = len(lines) - MAX_STACK_TRACE_LINES
        suffix = "more line" if remaining == 1 else "more lines"
        kept = "\n".join(lines[:MAX_STACK_TRACE_LINES])
        return f"{kept}\n\t... {remaining} {suffix}".strip()

    @staticmethod
    def parse_compiler_output(output: str | None) -> list[CompilerError]:
        """Return every compiler diagnostic found in *output*.

        No truncation happens here; display limits belong to the formatter.
        """
        if not output:
            return []
        return [
            CompilerError(
                file=m.group(1),
                line=int(m.group(2)),
                column=int(m.group(3)),
                message=m.group(4),
            )
            for m in COMPILER_ERROR_PATTERN.finditer(output)
        ]


# ---------------------------------------------------------------------------
# Element helpers
# ---------------------------------------------------------------------------


def _int_attr(element: Element, name: str) -> int:
    """Signed 32-bit decimal attribute; anything else (blanks, underscores,
    non-ASCII digits, overflow) counts as 0."""
    raw = element.get(name, "")
    if not _INT_ATTR.fullmatch(raw):
        return 0
    value = int(raw)
    return value if _INT32_MIN <= value <= _INT32_MAX else 0


def _extract_failure_details(root: Element) -> list[TestFailure]:
    results: list[TestFailure] = []
    for testcase in root.iter("testcase"):
        class_name = testcase.get("classname", "")
        method_name = testcase.get("name", "")
        for tag, kind in (("failure", FailureKind.FAILURE), ("error", FailureKind.ERROR)):
            for node in testcase.iter(tag):
                results.append(
                    TestFailure(
                        kind=kind,
                        class_name=class_name,
                        method_name=method_name,
                        message=node.get("message", ""),
                        stack_trace=ReportParser.truncate_stack_trace("".join(node.itertext())),
                    )
                )
    return results
