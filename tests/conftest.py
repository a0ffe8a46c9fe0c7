"""Shared test fixtures for silentbuild."""

from __future__ import annotations

import io
from collections.abc import Callable
from pathlib import Path
from typing import Any
from xml.sax.saxutils import escape, quoteattr

import pytest

from silentbuild.config import SilentBuildSettings
from silentbuild.core.event_spy import SilentEventSpy
from silentbuild.core.logging_control import NoOpLoggingBackend
from silentbuild.models.events import (
    EventType,
    ExecutionEvent,
    FailureInfo,
    HostSession,
    MojoExecution,
    Project,
)


class FakeStreams:
    """In-memory ``StreamTarget`` so tests never touch sys.stdout/sys.stderr."""

    def __init__(self) -> None:
        self.out = io.StringIO()
        self.err = io.StringIO()
        self.original = (self.out, self.err)

    def get(self):
        return self.out, self.err

    def set(self, out, err) -> None:
        self.out = out
        self.err = err

    @property
    def redirected(self) -> bool:
        return (self.out, self.err) != self.original


@pytest.fixture
def streams() -> FakeStreams:
    """Provide fresh fake process streams."""
    return FakeStreams()


@pytest.fixture
def protocol_out() -> io.StringIO:
    """Provide the buffer protocol lines are written to."""
    return io.StringIO()


@pytest.fixture
def settings() -> SilentBuildSettings:
    """Provide settings with host logging left untouched."""
    return SilentBuildSettings(active=None, logging_backend="none")


@pytest.fixture
def make_spy(
    protocol_out: io.StringIO, streams: FakeStreams, settings: SilentBuildSettings
) -> Callable[..., SilentEventSpy]:
    """Factory fixture: build an initialized SilentEventSpy."""

    def _factory(mode: str | None = "strict", **overrides: Any) -> SilentEventSpy:
        kwargs: dict[str, Any] = {
            "settings": settings,
            "flag": mode,
            "streams": streams,
            "logging_backend": NoOpLoggingBackend(),
        }
        kwargs.update(overrides)
        spy = SilentEventSpy(protocol_out, **kwargs)
        spy.init()
        return spy

    return _factory


# ---------------------------------------------------------------------------
# Report files
# ---------------------------------------------------------------------------


def report_xml(
    tests: int | str = 0,
    failures: int | str = 0,
    errors: int | str = 0,
    skipped: int | str = 0,
    cases: list[tuple[str, str, str | None, str, str]] | None = None,
) -> str:
    """Render a surefire-style report.

    Each case is ``(classname, name, kind, message, body)`` where *kind* is
    ``"failure"``, ``"error"`` or None for a passing case.
    """
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<testsuite name="suite" tests="{tests}" failures="{failures}"'
        f' errors="{errors}" skipped="{skipped}">',
    ]
    for classname, name, kind, message, body in cases or []:
        parts.append(f"<testcase classname={quoteattr(classname)} name={quoteattr(name)}>")
        if kind is not None:
            parts.append(f"<{kind} message={quoteattr(message)}>{escape(body)}</{kind}>")
        parts.append("</testcase>")
    parts.append("</testsuite>")
    return "\n".join(parts)


@pytest.fixture
def write_report() -> Callable[..., Path]:
    """Factory fixture: write a TEST-*.xml report into a directory."""

    def _factory(reports_dir: Path, name: str = "TEST-com.example.FooTest.xml", **kwargs: Any) -> Path:
        reports_dir.mkdir(parents=True, exist_ok=True)
        path = reports_dir / name
        path.write_text(report_xml(**kwargs), encoding="utf-8")
        return path

    return _factory


# ---------------------------------------------------------------------------
# Lifecycle events
# ---------------------------------------------------------------------------


class EventFactory:
    """Builds ExecutionEvents with sensible defaults."""

    def project(self, basedir: Path | None, artifact_id: str = "app", group_id: str = "com.example") -> Project:
        return Project(group_id=group_id, artifact_id=artifact_id, basedir=basedir)

    def session_started(
        self,
        projects: list[Project],
        goals: list[str] | None = None,
        user_properties: dict[str, str] | None = None,
    ) -> ExecutionEvent:
        host = HostSession(
            projects=projects,
            goals=goals if goals is not None else ["verify"],
            user_properties=user_properties if user_properties is not None else {},
        )
        return ExecutionEvent(type=EventType.SESSION_STARTED, session=host)

    def mojo_succeeded(
        self,
        project: Project | None,
        plugin: str = "maven-surefire-plugin",
        goal: str = "test",
        execution_id: str = "default-test",
    ) -> ExecutionEvent:
        return ExecutionEvent(
            type=EventType.MOJO_SUCCEEDED,
            project=project,
            mojo_execution=MojoExecution(artifact_id=plugin, goal=goal, execution_id=execution_id),
        )

    def mojo_failed(
        self,
        project: Project | None,
        plugin: str = "maven-surefire-plugin",
        goal: str = "test",
        execution_id: str = "default-test",
        exception: FailureInfo | None = None,
    ) -> ExecutionEvent:
        return ExecutionEvent(
            type=EventType.MOJO_FAILED,
            project=project,
            mojo_execution=MojoExecution(artifact_id=plugin, goal=goal, execution_id=execution_id),
            exception=exception,
        )

    def project_succeeded(self, project: Project) -> ExecutionEvent:
        return ExecutionEvent(type=EventType.PROJECT_SUCCEEDED, project=project)

    def project_failed(self, project: Project) -> ExecutionEvent:
        return ExecutionEvent(type=EventType.PROJECT_FAILED, project=project)

    def session_ended(self) -> ExecutionEvent:
        return ExecutionEvent(type=EventType.SESSION_ENDED)


@pytest.fixture
def events() -> EventFactory:
    """Provide an ExecutionEvent factory."""
    return EventFactory()


def protocol_lines(buffer: io.StringIO) -> list[str]:
    """Non-empty lines written to a protocol buffer."""
    return [line for line in buffer.getvalue().splitlines() if line]


@pytest.fixture
def read_protocol(protocol_out: io.StringIO) -> Callable[[], list[str]]:
    """Return a callable yielding the protocol lines emitted so far."""
    return lambda: protocol_lines(protocol_out)
