"""Value records produced by the report parser — all frozen Pydantic models.

These records flow from ``ReportParser`` into ``BuildState`` (counts only)
and ``OutputFormatter`` (full detail).  They never change after
construction.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class FailureKind(str, Enum):
    """Whether a test case failed an assertion or raised unexpectedly."""

    FAILURE = "failure"
    ERROR = "error"


class TestFailure(BaseModel):
    """A single failed or errored test case extracted from a report file."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    class_name: str = ""
    method_name: str = ""
    message: str | None = None
    stack_trace: str | None = None

    @field_validator("class_name", "method_name", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return "" if value is None else value

    def __str__(self) -> str:
        return f"{self.kind.name} {self.class_name}#{self.method_name}: {self.message}"


class TestSummary(BaseModel):
    """Aggregated counts of one or more test report files.

    ``passed`` is derived and clamped at zero, so inconsistent report
    attributes (more failures than tests) never produce a negative count.
    """

    __test__ = False

    model_config = ConfigDict(frozen=True)

    total: int = 0
    failures: int = 0
    errors: int = 0
    skipped: int = 0
    failure_details: tuple[TestFailure, ...] = ()

    @property
    def passed(self) -> int:
        return max(0, self.total - self.failures - self.errors - self.skipped)

    @property
    def has_failures(self) -> bool:
        return self.failures > 0 or self.errors > 0

    def __str__(self) -> str:
        return (
            f"TestSummary(total={self.total}, passed={self.passed}, "
            f"failures={self.failures}, errors={self.errors}, skipped={self.skipped})"
        )


# Shared "no tests found" result.  Callers compare by identity to skip work.
EMPTY_SUMMARY = TestSummary()


class CompilerError(BaseModel):
    """One ``file:[line,column] message`` diagnostic from compiler output."""

    model_config = ConfigDict(frozen=True)

    file: str
    line: int = 0
    column: int = 0
    message: str

    def __str__(self) -> str:
        return f"{self.file}:[{self.line},{self.column}] {self.message}"
