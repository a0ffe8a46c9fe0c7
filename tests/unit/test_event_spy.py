"""Tests for SilentEventSpy — activation, transitions and per-event behaviour."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from silentbuild.core.event_spy import SilentEventSpy
from silentbuild.core.logging_control import StdlibLoggingBackend
from silentbuild.core.session import REDIRECT_TEST_OUTPUT_PROP
from silentbuild.models.events import EventType, ExecutionEvent, FailureInfo
from silentbuild.models.session import ActivationMode


class RecordingBackend:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def suppress(self, level_name: str) -> None:
        self.calls.append(f"suppress:{level_name}")

    def restore(self) -> None:
        self.calls.append("restore")


class FailingBackend:
    def suppress(self, level_name: str) -> None:
        raise RuntimeError("no logging here")

    def restore(self) -> None:
        raise AssertionError("restore must not follow a failed suppress")


class TestActivation:
    def test_off_ignores_everything(self, make_spy, events, read_protocol, tmp_path: Path):
        spy = make_spy("off")
        spy.on_event(events.session_started([events.project(tmp_path)]))
        spy.on_event(events.session_ended())
        assert spy.mode == ActivationMode.OFF
        assert not spy.active
        assert read_protocol() == []

    def test_env_used_when_flag_unset(self, make_spy, settings):
        spy = make_spy(None, settings=settings.model_copy(update={"active": "relaxed"}))
        assert spy.mode == ActivationMode.RELAXED
        assert spy.active

    @pytest.mark.parametrize(
        ("mode", "level"), [("strict", "off"), ("relaxed", "error")]
    )
    def test_logging_suppressed_by_mode(self, make_spy, mode: str, level: str):
        backend = RecordingBackend()
        spy = make_spy(mode, logging_backend=backend)
        assert backend.calls == [f"suppress:{level}"]
        spy.close()
        spy.close()
        assert backend.calls == [f"suppress:{level}", "restore"]

    def test_init_failure_disables(self, make_spy, events, read_protocol, tmp_path: Path):
        spy = make_spy("strict", logging_backend=FailingBackend())
        assert not spy.active
        assert read_protocol() == ["MSE:PASSTHROUGH init failed: no logging here"]
        spy.on_event(events.session_started([events.project(tmp_path)]))
        spy.close()
        assert len(read_protocol()) == 1

    def test_stdlib_backend_from_settings(self, make_spy, settings):
        root = logging.getLogger()
        before = root.level
        spy = make_spy(
            "strict",
            settings=settings.model_copy(update={"logging_backend": "stdlib"}),
            logging_backend=None,
        )
        assert root.level == logging.CRITICAL + 1
        spy.close()
        assert root.level == before

    def test_close_before_init_is_safe(self, protocol_out, streams):
        SilentEventSpy(protocol_out, streams=streams).close()
        assert protocol_out.getvalue() == ""


class TestSessionStart:
    def test_emits_start_and_overrides_property(self, make_spy, events, read_protocol, tmp_path: Path):
        spy = make_spy()
        event = events.session_started(
            [events.project(tmp_path, "a"), events.project(tmp_path / "b", "b")],
            goals=["clean", "install"],
        )
        spy.on_event(event)
        assert read_protocol() == ["MSE:SESSION_START modules=2 goals=clean,install"]
        assert event.session.user_properties[REDIRECT_TEST_OUTPUT_PROP] == "true"
        assert spy.session is not None

    def test_redirects_to_first_module_log(self, make_spy, events, streams, tmp_path: Path):
        spy = make_spy()
        spy.on_event(events.session_started([events.project(tmp_path)]))
        assert streams.redirected
        assert spy.log_file == tmp_path / "target" / "mse-build.log"

    def test_no_redirect_when_disabled(self, make_spy, events, streams, settings, tmp_path: Path):
        spy = make_spy(settings=settings.model_copy(update={"redirect_stdio": False}))
        spy.on_event(events.session_started([events.project(tmp_path)]))
        assert not streams.redirected
        assert spy.log_file is None

    def test_no_redirect_without_basedir(self, make_spy, events, streams, read_protocol):
        spy = make_spy()
        spy.on_event(events.session_started([events.project(None)]))
        assert not streams.redirected
        assert read_protocol() == ["MSE:SESSION_START modules=1 goals=verify"]

    def test_restart_resets_previous_session(self, make_spy, events, streams, tmp_path: Path):
        spy = make_spy()
        first = events.session_started([events.project(tmp_path)])
        spy.on_event(first)
        spy.on_event(events.project_failed(events.project(tmp_path)))
        spy.on_event(events.session_started([events.project(tmp_path)]))
        assert REDIRECT_TEST_OUTPUT_PROP not in first.session.user_properties
        assert spy.session.state.failed_modules == 0


class TestEventsOutsideSession:
    def test_session_end_before_start_is_silent(self, make_spy, events, read_protocol):
        spy = make_spy()
        spy.on_event(events.session_ended())
        spy.on_event(events.mojo_failed(None))
        assert read_protocol() == []
        assert spy.active

    def test_non_event_objects_ignored(self, make_spy, read_protocol):
        spy = make_spy()
        spy.on_event("not an event")
        spy.on_event(None)
        assert read_protocol() == []
        assert spy.active


class TestStepFailed:
    def test_missing_metadata_only_marks_failed(self, make_spy, events, read_protocol, tmp_path: Path):
        spy = make_spy()
        spy.on_event(events.session_started([events.project(tmp_path)]))
        spy.on_event(ExecutionEvent(type=EventType.MOJO_FAILED, project=events.project(tmp_path)))
        assert spy.session.state.is_build_failed
        assert read_protocol() == ["MSE:SESSION_START modules=1 goals=verify"]

    def test_fail_line_unknown_module(self, make_spy, events, read_protocol, tmp_path: Path):
        spy = make_spy()
        spy.on_event(events.session_started([events.project(tmp_path)]))
        spy.on_event(events.mojo_failed(None, plugin="maven-jar-plugin", goal="jar", execution_id="default-jar"))
        assert read_protocol()[1] == "MSE:FAIL maven-jar-plugin:jar @ unknown"

    def test_compiler_errors_from_long_message(self, make_spy, events, read_protocol, tmp_path: Path):
        spy = make_spy()
        project = events.project(tmp_path, "core")
        spy.on_event(events.session_started([project]))
        failure = FailureInfo(
            message="Compilation failure",
            cause=FailureInfo(
                long_message="[ERROR] /x/A.java:[3,9] cannot find symbol\n[ERROR] /x/B.java:[1,1] bad"
            ),
        )
        spy.on_event(events.mojo_failed(
            project, plugin="maven-compiler-plugin", goal="compile",
            execution_id="default-compile", exception=failure,
        ))
        assert read_protocol()[1:] == [
            "MSE:FAIL maven-compiler-plugin:compile @ core",
            "MSE:ERR /x/A.java:3:9 cannot find symbol",
            "MSE:ERR /x/B.java:1:1 bad",
        ]
        assert spy.session.state.compiler_errors == 2

    def test_compiler_errors_from_build_log(self, make_spy, events, read_protocol, streams, tmp_path: Path):
        spy = make_spy()
        project = events.project(tmp_path, "core")
        spy.on_event(events.session_started([project]))
        out, _ = streams.get()
        out.write("[ERROR] /x/C.java:[7,2] ';' expected\n")
        spy.on_event(events.mojo_failed(
            project, plugin="maven-compiler-plugin", goal="compile",
            exception=FailureInfo(message="Compilation failure"),
        ))
        assert "MSE:ERR /x/C.java:7:2 ';' expected" in read_protocol()
        assert spy.session.state.compiler_errors == 1

    def test_generic_failure_detail_with_hint(self, make_spy, events, read_protocol, streams, tmp_path: Path):
        spy = make_spy()
        project = events.project(tmp_path, "web")
        spy.on_event(events.session_started([project]))
        streams.get()[1].write("npm ERR! error: module not found\n")
        spy.on_event(events.mojo_failed(
            project, plugin="frontend-maven-plugin", goal="npm", execution_id="npm-install",
            exception=FailureInfo(message="Failed to run task"),
        ))
        assert read_protocol()[1:] == [
            "MSE:FAIL frontend-maven-plugin:npm (npm-install) @ web",
            "MSE:DETAIL Failed to run task",
            "MSE:DETAIL npm ERR! error: module not found",
        ]

    def test_hint_not_repeated(self, make_spy, events, read_protocol, streams, tmp_path: Path):
        spy = make_spy()
        project = events.project(tmp_path, "web")
        spy.on_event(events.session_started([project]))
        streams.get()[0].write("error: exploded\n")
        spy.on_event(events.mojo_failed(
            project, plugin="exec-maven-plugin", goal="exec",
            exception=FailureInfo(message="Command failed: error: exploded"),
        ))
        assert read_protocol()[2:] == ["MSE:DETAIL Command failed: error: exploded"]


class TestTestSteps:
    def test_success_with_passing_tests_emits_nothing(
        self, make_spy, events, read_protocol, write_report, tmp_path: Path
    ):
        spy = make_spy()
        project = events.project(tmp_path)
        write_report(tmp_path / "target" / "surefire-reports", tests=3)
        spy.on_event(events.session_started([project]))
        spy.on_event(events.mojo_succeeded(project))
        assert len(read_protocol()) == 1
        assert spy.session.state.test_total == 3

    def test_reports_parsed_once_per_key(
        self, make_spy, events, read_protocol, write_report, tmp_path: Path
    ):
        spy = make_spy()
        project = events.project(tmp_path)
        write_report(tmp_path / "target" / "surefire-reports", tests=2, failures=1, cases=[
            ("T", "m", "failure", "boom", "trace"),
        ])
        spy.on_event(events.session_started([project]))
        spy.on_event(events.mojo_failed(project))
        spy.on_event(events.mojo_failed(project))
        assert sum(line.startswith("MSE:TESTS ") for line in read_protocol()) == 1
        assert spy.session.state.test_total == 2

    def test_failsafe_uses_its_own_dir(
        self, make_spy, events, read_protocol, write_report, tmp_path: Path
    ):
        spy = make_spy()
        project = events.project(tmp_path)
        write_report(tmp_path / "target" / "failsafe-reports", tests=4, errors=1, cases=[
            ("it.DbIT", "connects", "error", "refused", "java.net.ConnectException"),
        ])
        spy.on_event(events.session_started([project]))
        spy.on_event(events.mojo_succeeded(
            project, plugin="maven-failsafe-plugin", goal="integration-test", execution_id="default-it",
        ))
        lines = read_protocol()
        assert lines[1] == "MSE:TESTS total=4 passed=3 failed=0 errors=1 skipped=0"
        assert lines[2] == "MSE:TEST_ERROR it.DbIT#connects"
        assert spy.session.reports_dirs == [tmp_path / "target" / "failsafe-reports"]

    def test_other_plugin_success_ignored(self, make_spy, events, read_protocol, tmp_path: Path):
        spy = make_spy()
        project = events.project(tmp_path)
        spy.on_event(events.session_started([project]))
        spy.on_event(events.mojo_succeeded(project, plugin="maven-jar-plugin", goal="jar"))
        assert spy.session.reports_dirs == []
        assert len(read_protocol()) == 1

    def test_project_without_basedir_skipped(self, make_spy, events, tmp_path: Path):
        spy = make_spy()
        spy.on_event(events.session_started([events.project(tmp_path)]))
        spy.on_event(events.mojo_succeeded(events.project(None)))
        assert spy.session.parsed_keys == frozenset()


class TestSessionEnd:
    def test_ok_line(self, make_spy, events, read_protocol, tmp_path: Path):
        spy = make_spy()
        project = events.project(tmp_path)
        spy.on_event(events.session_started([project]))
        spy.on_event(events.project_succeeded(project))
        spy.on_event(events.session_ended())
        last = read_protocol()[-1]
        assert last.startswith("MSE:OK modules=1 passed=0 failed=0 errors=0 skipped=0 time=")
        assert spy.session is None

    def test_build_log_line_only_when_file_exists(
        self, make_spy, events, read_protocol, streams, tmp_path: Path
    ):
        spy = make_spy()
        spy.on_event(events.session_started([events.project(tmp_path)]))
        spy.on_event(events.session_ended())
        assert not any(line.startswith("MSE:BUILD_LOG") for line in read_protocol())

    def test_strict_keeps_redirect_open(self, make_spy, events, streams, tmp_path: Path):
        spy = make_spy("strict")
        spy.on_event(events.session_started([events.project(tmp_path)]))
        streams.get()[0].write("x\n")
        spy.on_event(events.session_ended())
        assert streams.redirected
        spy.close()
        assert not streams.redirected

    def test_relaxed_restores_console(self, make_spy, events, streams, read_protocol, tmp_path: Path):
        spy = make_spy("relaxed")
        event = events.session_started([events.project(tmp_path)])
        spy.on_event(event)
        streams.get()[0].write("x\n")
        spy.on_event(events.session_ended())
        assert not streams.redirected
        assert REDIRECT_TEST_OUTPUT_PROP not in event.session.user_properties
        log = tmp_path / "target" / "mse-build.log"
        assert f"MSE:BUILD_LOG {log}" in read_protocol()
