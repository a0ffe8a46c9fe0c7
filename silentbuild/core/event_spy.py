"""Session state machine — the engine's entry point inside the host build.

States
------
- Disabled : activation mode is OFF, or a fault disabled the engine
- Idle     : initialized, no session in progress
- Active   : between session-start and session-end

The machine receives every lifecycle event from the host, drives the
report parser, the aggregator, the console redirector and the formatter,
and emits the protocol on the process's original output stream.

Fail-open: any exception while handling an event produces one
``PASSTHROUGH`` line, restores every piece of global state the engine
touched, and disables the engine for the rest of the run.  The host
build is never broken by this code.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import TextIO

from silentbuild.config import SilentBuildSettings, logging_level_for_mode, resolve_mode
from silentbuild.core.build_state import AtomicFlag
from silentbuild.core.diagnostics import (
    extract_failure_hint_from_build_log,
    extract_failure_output,
)
from silentbuild.core.formatter import OutputFormatter
from silentbuild.core.logging_control import LoggingBackend, create_logging_backend
from silentbuild.core.redirect import ConsoleRedirector, StreamTarget
from silentbuild.core.report_parser import ReportParser
from silentbuild.core.session import BuildSession
from silentbuild.models.events import (
    EventType,
    ExecutionEvent,
    HostSession,
    MojoExecution,
    Project,
)
from silentbuild.models.session import ActivationMode, ParseKey

logger = logging.getLogger(__name__)

SUREFIRE_PLUGIN = "maven-surefire-plugin"
FAILSAFE_PLUGIN = "maven-failsafe-plugin"
COMPILER_PLUGIN = "maven-compiler-plugin"
TEST_PLUGINS = frozenset({SUREFIRE_PLUGIN, FAILSAFE_PLUGIN})

SUREFIRE_REPORTS = "surefire-reports"
FAILSAFE_REPORTS = "failsafe-reports"


class SilentEventSpy:
    """Consumes host lifecycle events and reports them in the MSE protocol.

    Parameters
    ----------
    out:
        Protocol output stream.  Defaults to ``sys.stdout`` as it is at
        construction time, before any redirection.
    settings:
        Engine settings; read from the environment if not provided.
    flag:
        Explicit activation value (e.g. from a host property).  Takes
        precedence over ``MSE_ACTIVE`` when not None.
    streams:
        Process stream access for console redirection.
    logging_backend:
        Host logging capability; built from ``settings.logging_backend``
        if not provided.
    """

    def __init__(
        self,
        out: TextIO | None = None,
        *,
        settings: SilentBuildSettings | None = None,
        flag: str | None = None,
        streams: StreamTarget | None = None,
        logging_backend: LoggingBackend | None = None,
        parser: ReportParser | None = None,
    ) -> None:
        self._settings = settings or SilentBuildSettings()
        self._flag = flag
        self._formatter = OutputFormatter(out)
        self._parser = parser or ReportParser()
        self._redirector = ConsoleRedirector(self._formatter.emit_passthrough, streams)
        self._logging_backend = logging_backend
        self._mode = ActivationMode.OFF
        self._active = AtomicFlag()
        self._logging_suppressed = AtomicFlag()
        self._session: BuildSession | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def mode(self) -> ActivationMode:
        return self._mode

    @property
    def active(self) -> bool:
        return bool(self._active)

    @property
    def session(self) -> BuildSession | None:
        return self._session

    @property
    def log_file(self) -> Path | None:
        return self._redirector.log_file

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Resolve the activation mode and turn host logging down."""
        self._mode = resolve_mode(self._flag, self._settings.active)
        activated = self._mode != ActivationMode.OFF
        self._active.set(activated)
        if not activated:
            return
        try:
            self._suppress_host_logging()
        except Exception as exc:  # noqa: BLE001
            self._active.set(False)
            self._formatter.emit_passthrough(f"init failed: {exc}")

    def close(self) -> None:
        """Best-effort teardown at host shutdown.  Never raises."""
        try:
            self._reset_session_state()
            self._restore_host_logging()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Teardown failed: %s", exc)

    def on_event(self, event: object) -> None:
        """Handle one host event.  Nothing raised here reaches the host."""
        if not self._active:
            return
        if not isinstance(event, ExecutionEvent):
            return
        try:
            self._dispatch(event)
        except Exception as exc:  # noqa: BLE001
            self._fail_open(exc)

    def _fail_open(self, exc: Exception) -> None:
        self._active.set(False)
        try:
            self._formatter.emit_passthrough(f"{type(exc).__name__}: {exc}")
        except OSError as emit_exc:
            logger.debug("Cannot report fault %r: %s", exc, emit_exc)
        try:
            self._reset_session_state()
            self._restore_host_logging()
        except Exception as restore_exc:  # noqa: BLE001
            logger.debug("Restore after fault failed: %s", restore_exc)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, event: ExecutionEvent) -> None:
        if event.type != EventType.SESSION_STARTED and self._session is None:
            return
        if event.type == EventType.SESSION_STARTED:
            self._handle_session_started(event)
        elif event.type == EventType.MOJO_SUCCEEDED:
            self._handle_mojo_succeeded(event)
        elif event.type == EventType.MOJO_FAILED:
            self._handle_mojo_failed(event)
        elif event.type == EventType.PROJECT_SUCCEEDED:
            self._session.state.module_succeeded()
        elif event.type == EventType.PROJECT_FAILED:
            self._session.state.module_failed()
        elif event.type == EventType.SESSION_ENDED:
            self._handle_session_ended()
        # Every other lifecycle event is noise and stays suppressed

    def _handle_session_started(self, event: ExecutionEvent) -> None:
        self._reset_session_state()
        host = event.session or HostSession()
        projects = host.projects or []
        session = BuildSession(host, len(projects), host.goals)
        session.suppress_test_output()
        self._session = session

        if self._settings.redirect_stdio and projects and projects[0].basedir is not None:
            self._redirector.redirect_to_file(
                self._settings.build_log_path(projects[0].basedir)
            )
        self._formatter.emit_session_start(len(projects), host.goals)

    def _handle_mojo_succeeded(self, event: ExecutionEvent) -> None:
        mojo = event.mojo_execution
        if mojo is None or mojo.artifact_id not in TEST_PLUGINS:
            return
        if event.project is None:
            return
        self._parse_and_accumulate_tests(event.project, mojo)

    def _handle_mojo_failed(self, event: ExecutionEvent) -> None:
        self._session.state.set_build_failed()

        mojo = event.mojo_execution
        if mojo is None:
            return

        project = event.project
        module_id = (project.artifact_id if project is not None else None) or "unknown"
        self._formatter.emit_fail(mojo.artifact_id, mojo.goal, mojo.execution_id, module_id)

        if mojo.artifact_id in TEST_PLUGINS and project is not None:
            self._parse_and_accumulate_tests(project, mojo)
        elif mojo.artifact_id == COMPILER_PLUGIN:
            self._parse_and_emit_compiler_errors(event)
        else:
            self._parse_and_emit_failure_details(event)

    def _handle_session_ended(self) -> None:
        session = self._session
        try:
            self._formatter.emit_test_output_paths(session.reports_dirs)
            self._redirector.flush()
            log_file = self._redirector.log_file
            if log_file is not None and log_file.exists():
                self._formatter.emit_build_log(log_file)
            if session.state.is_build_failed:
                self._formatter.emit_build_failed(session.state)
            else:
                self._formatter.emit_ok(session.state)
        finally:
            keep_redirect = self.active and self._mode == ActivationMode.STRICT
            self._reset_session_state(restore_console=not keep_redirect)

    # ------------------------------------------------------------------
    # Artifact handling
    # ------------------------------------------------------------------

    def _reports_subdir(self, mojo: MojoExecution) -> str:
        name = FAILSAFE_REPORTS if mojo.artifact_id == FAILSAFE_PLUGIN else SUREFIRE_REPORTS
        return (PurePosixPath(self._settings.build_output_dir.as_posix()) / name).as_posix()

    def _parse_and_accumulate_tests(self, project: Project, mojo: MojoExecution) -> None:
        if project.basedir is None:
            return

        subdir = self._reports_subdir(mojo)
        key = ParseKey(
            group_id=project.group_id,
            artifact_id=project.artifact_id,
            execution_id=mojo.execution_id,
            reports_subdir=subdir,
        )
        session = self._session
        if not session.mark_parsed(key):
            logger.debug("Reports for %s already parsed", key)
            return

        reports_dir = project.basedir / subdir
        session.add_reports_dir(reports_dir)
        summary = self._parser.parse_reports_dir(reports_dir, self._formatter.emit_passthrough)
        session.state.accumulate_tests(summary)
        if summary.has_failures:
            self._formatter.emit_test_results(summary)

    def _parse_and_emit_compiler_errors(self, event: ExecutionEvent) -> None:
        output = extract_failure_output(event.exception)
        errors = self._parser.parse_compiler_output(output)

        # Console output since the previous compiler failure belongs to this
        # step; consume it even when the failure text already has diagnostics
        fresh: list[str] = []
        if self._redirector.log_opened:
            self._redirector.flush()
            fresh = self._session.take_unscanned_log_lines(
                self._redirector.log_file, self._settings.build_log_tail_lines
            )
        if not errors:
            # Some compiler setups only print diagnostics to the console
            errors = self._parser.parse_compiler_output("\n".join(fresh))
        if errors:
            self._formatter.emit_compiler_errors(errors)
            self._session.state.add_compiler_errors(len(errors))

    def _parse_and_emit_failure_details(self, event: ExecutionEvent) -> None:
        details: list[str] = []
        output = extract_failure_output(event.exception)
        if output and output.strip():
            details.append(output)

        self._redirector.flush()
        hint = extract_failure_hint_from_build_log(
            self._redirector.log_file, self._settings.build_log_tail_lines
        )
        if hint and not any(hint in detail for detail in details):
            details.append(hint)

        if details:
            self._formatter.emit_failure_details("\n".join(details))

    # ------------------------------------------------------------------
    # Global state
    # ------------------------------------------------------------------

    def _reset_session_state(self, restore_console: bool = True) -> None:
        session, self._session = self._session, None
        if session is not None:
            session.restore_test_output()
        if restore_console:
            self._redirector.reset()

    def _suppress_host_logging(self) -> None:
        if self._logging_backend is None:
            self._logging_backend = create_logging_backend(self._settings.logging_backend)
        self._logging_backend.suppress(logging_level_for_mode(self._mode))
        self._logging_suppressed.set(True)

    def _restore_host_logging(self) -> None:
        if not self._logging_suppressed.compare_and_set(True, False):
            return
        self._logging_backend.restore()
