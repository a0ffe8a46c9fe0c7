"""silentbuild data models — all Pydantic v2; value records are frozen."""

from silentbuild.models.events import (
    EventType,
    ExecutionEvent,
    FailureInfo,
    HostSession,
    MojoExecution,
    Project,
)
from silentbuild.models.results import (
    EMPTY_SUMMARY,
    CompilerError,
    FailureKind,
    TestFailure,
    TestSummary,
)
from silentbuild.models.session import ActivationMode, ParseKey

__all__ = [
    # events
    "EventType",
    "ExecutionEvent",
    "FailureInfo",
    "HostSession",
    "MojoExecution",
    "Project",
    # results
    "EMPTY_SUMMARY",
    "CompilerError",
    "FailureKind",
    "TestFailure",
    "TestSummary",
    # session
    "ActivationMode",
    "ParseKey",
]
