"""``silentbuild reports DIR`` — summarise a directory of XML test reports."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from silentbuild.core.report_parser import ReportParser
from silentbuild.models.results import FailureKind

console = Console()


def reports_cmd(
    reports_dir: Path = typer.Argument(
        ...,
        help="Report directory, e.g. target/surefire-reports.",
    ),
) -> None:
    """Parse every TEST-*.xml report in a directory and show the totals.

    Corrupt reports are listed and skipped; they never abort the summary.
    """
    if not reports_dir.is_dir():
        console.print(f"[bold red]Not a directory:[/bold red] {reports_dir}")
        raise typer.Exit(code=1)

    warnings: list[str] = []
    summary = ReportParser().parse_reports_dir(reports_dir, warnings.append)

    for warning in warnings:
        console.print(warning, style="yellow", markup=False)

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Total", justify="right")
    table.add_column("Passed", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Errors", justify="right", style="red")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_row(
        str(summary.total),
        str(summary.passed),
        str(summary.failures),
        str(summary.errors),
        str(summary.skipped),
    )

    border_style = "red" if summary.has_failures else "green"
    console.print(
        Panel(table, title=f"[bold]{reports_dir}[/bold]", border_style=border_style)
    )

    for failure in summary.failure_details:
        label = "[red]FAIL[/red]" if failure.kind == FailureKind.FAILURE else "[magenta]ERROR[/magenta]"
        console.print(f"{label} [cyan]{failure.class_name}#{failure.method_name}[/cyan]")
        if failure.message:
            console.print(f"  {failure.message}", markup=False)
