"""silentbuild CLI — Typer-based tooling around the reporting engine.

Provides the ``silentbuild`` command with subcommands for replaying a
recorded event stream, inspecting a test-report directory, and pulling
compiler diagnostics out of captured output.

Human-facing output uses Rich; protocol output is written verbatim.
"""
