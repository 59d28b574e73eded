"""witnessrelay CLI — Typer-based command-line interface.

Provides the ``witnessrelay`` command with subcommands for reconciling a
batch of commits, querying a single status, replaying stored containers
and inspecting a container.

All output uses Rich for formatted terminal display.
"""
