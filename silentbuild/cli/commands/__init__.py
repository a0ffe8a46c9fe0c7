"""Subcommand implementations, registered in ``silentbuild.cli.app``."""
