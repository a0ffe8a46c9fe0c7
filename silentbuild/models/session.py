"""Session-scoped models — activation mode and report de-duplication keys."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ActivationMode(str, Enum):
    """How aggressively the engine takes over the build's console.

    - OFF      : engine is inert, every event passes through untouched
    - STRICT   : host logging fully suppressed, build log kept open
    - RELAXED  : host logging limited to errors
    """

    OFF = "off"
    STRICT = "strict"
    RELAXED = "relaxed"


class ParseKey(BaseModel):
    """Identity of one module/execution report directory.

    A report directory is parsed at most once per session even when the
    triggering step event is observed more than once.
    """

    model_config = ConfigDict(frozen=True)

    group_id: str | None = None
    artifact_id: str | None = None
    execution_id: str | None = None
    reports_subdir: str

    def __str__(self) -> str:
        return f"{self.group_id}:{self.artifact_id}:{self.execution_id}:{self.reports_subdir}"
