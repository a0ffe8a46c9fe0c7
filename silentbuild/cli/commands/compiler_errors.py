"""``silentbuild compiler-errors FILE`` — extract compiler diagnostics as ERR lines."""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from rich.console import Console

from silentbuild.core.formatter import OutputFormatter
from silentbuild.core.report_parser import ReportParser

err_console = Console(stderr=True)


def compiler_errors_cmd(
    output_file: Path = typer.Argument(
        ...,
        help="Captured compiler or build output.",
    ),
) -> None:
    """Print every ``File.java:[line,col] message`` diagnostic found in a file."""
    try:
        text = output_file.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        err_console.print(f"[bold red]Cannot read[/bold red] {output_file}: {exc}")
        raise typer.Exit(code=1)

    errors = ReportParser.parse_compiler_output(text)
    if not errors:
        err_console.print("[dim]No compiler diagnostics found.[/dim]")
        return
    OutputFormatter(sys.stdout).emit_compiler_errors(errors)
