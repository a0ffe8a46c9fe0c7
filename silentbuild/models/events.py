"""Host lifecycle events — the interface consumed from the build orchestrator.

The orchestrator owns these objects; the engine only reads them, with one
exception: ``HostSession.user_properties`` is a mutable map the engine writes
a test-output override into (and restores afterwards).

All models can be loaded from JSON, which is how ``silentbuild replay``
feeds a recorded event stream through the engine.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class EventType(str, Enum):
    """Lifecycle event types emitted by the host orchestrator."""

    SESSION_STARTED = "session_started"
    PROJECT_STARTED = "project_started"
    PROJECT_SKIPPED = "project_skipped"
    MOJO_STARTED = "mojo_started"
    MOJO_SUCCEEDED = "mojo_succeeded"
    MOJO_FAILED = "mojo_failed"
    PROJECT_SUCCEEDED = "project_succeeded"
    PROJECT_FAILED = "project_failed"
    SESSION_ENDED = "session_ended"


class Project(BaseModel):
    """One buildable module of a (possibly multi-module) build."""

    model_config = ConfigDict(frozen=True)

    group_id: str | None = None
    artifact_id: str | None = None
    basedir: Path | None = None


class MojoExecution(BaseModel):
    """A single build step: one plugin goal bound to one execution."""

    model_config = ConfigDict(frozen=True)

    artifact_id: str | None = None  # plugin id, e.g. "maven-surefire-plugin"
    goal: str | None = None
    execution_id: str | None = None


class FailureInfo(BaseModel):
    """Failure description attached to a failed step.

    ``long_message`` carries the full diagnostic text some plugins attach
    (compiler output, for instance); ``cause`` links to the wrapped failure.
    """

    model_config = ConfigDict(frozen=True)

    type_name: str = "Exception"
    message: str | None = None
    long_message: str | None = None
    cause: FailureInfo | None = None

    @classmethod
    def from_exception(cls, exc: BaseException, *, _depth: int = 0) -> FailureInfo:
        """Build a FailureInfo chain from a Python exception and its causes."""
        cause = exc.__cause__ or exc.__context__
        long_message = getattr(exc, "long_message", None)
        return cls(
            type_name=type(exc).__name__,
            message=str(exc) if exc.args else None,
            long_message=long_message if isinstance(long_message, str) else None,
            cause=(
                cls.from_exception(cause, _depth=_depth + 1)
                if cause is not None and _depth < 16
                else None
            ),
        )


class HostSession(BaseModel):
    """The host's view of one build invocation."""

    projects: list[Project] | None = None
    goals: list[str] | None = None
    user_properties: dict[str, str] | None = None


class ExecutionEvent(BaseModel):
    """A single lifecycle event delivered to the engine."""

    model_config = ConfigDict(frozen=True)

    type: EventType
    session: HostSession | None = None
    project: Project | None = None
    mojo_execution: MojoExecution | None = None
    exception: FailureInfo | None = None
