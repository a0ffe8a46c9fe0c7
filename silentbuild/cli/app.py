"""Main Typer application — imports and registers all CLI commands.

Entry point: ``silentbuild`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from silentbuild.cli.commands.compiler_errors import compiler_errors_cmd
from silentbuild.cli.commands.replay import replay_cmd
from silentbuild.cli.commands.reports import reports_cmd

app = typer.Typer(
    name="silentbuild",
    help="silentbuild: concise, machine-readable build reporting.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="replay", help="Replay a JSON-lines event stream through the engine.")(replay_cmd)
app.command(name="reports", help="Summarise a directory of XML test reports.")(reports_cmd)
app.command(name="compiler-errors", help="Extract compiler diagnostics from a file.")(
    compiler_errors_cmd
)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
