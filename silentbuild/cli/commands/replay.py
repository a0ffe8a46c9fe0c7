"""``silentbuild replay EVENTS_FILE`` — feed a recorded event stream through the engine.

Each non-blank line of the file is one JSON-encoded ``ExecutionEvent``.
The protocol is written to stdout exactly as it would be inside a build.
The console is left alone; only reporting is exercised.
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console

from silentbuild.config import SilentBuildSettings
from silentbuild.core.event_spy import SilentEventSpy
from silentbuild.core.logging_control import NoOpLoggingBackend
from silentbuild.models.events import ExecutionEvent

err_console = Console(stderr=True)


def load_events(events_file: Path) -> list[ExecutionEvent]:
    """Read JSON-lines events; raises ``ValueError`` naming the bad line."""
    events: list[ExecutionEvent] = []
    with open(events_file, encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            if not line.strip():
                continue
            try:
                events.append(ExecutionEvent.model_validate_json(line))
            except ValidationError as exc:
                raise ValueError(f"line {lineno}: {exc.error_count()} validation error(s)") from exc
    return events


def replay_cmd(
    events_file: Path = typer.Argument(
        ...,
        help="JSON-lines file with one ExecutionEvent per line.",
    ),
    mode: str = typer.Option(
        "strict",
        "--mode",
        "-m",
        help="Activation value: strict, relaxed or off.",
    ),
) -> None:
    """Replay recorded lifecycle events and print the resulting protocol."""
    if not events_file.is_file():
        err_console.print(f"[bold red]Events file not found:[/bold red] {events_file}")
        raise typer.Exit(code=1)

    try:
        events = load_events(events_file)
    except ValueError as exc:
        err_console.print(f"[bold red]Invalid event stream:[/bold red] {exc}")
        raise typer.Exit(code=1)

    spy = SilentEventSpy(
        settings=SilentBuildSettings(redirect_stdio=False),
        flag=mode,
        logging_backend=NoOpLoggingBackend(),
    )
    spy.init()
    try:
        for event in events:
            spy.on_event(event)
    finally:
        spy.close()
