"""Main Typer application — imports and registers all CLI commands.

Entry point: ``witnessrelay`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from witnessrelay.cli.commands.inspect_cmd import inspect_cmd
from witnessrelay.cli.commands.reconcile import reconcile_cmd
from witnessrelay.cli.commands.status import status_cmd
from witnessrelay.cli.commands.store import store_cmd
from witnessrelay.config import RelayConfig

app = typer.Typer(
    name="witnessrelay",
    help="witnessrelay: reconcile anchor status and relay witness proofs to storage nodes.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="reconcile", help="Reconcile anchor status for a CSV of commits.")(reconcile_cmd)
app.command(name="status", help="Query the anchor status of one commit.")(status_cmd)
app.command(name="store", help="Replay stored containers into the event store.")(store_cmd)
app.command(name="inspect", help="List the roots and blocks of a container.")(inspect_cmd)


def configure_logging(level: str) -> None:
    """Route log records through Rich on stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        None, "--log-level", help="Logging level [default: WITNESSRELAY_LOG_LEVEL or INFO]."
    ),
) -> None:
    """Configure logging before any command runs."""
    configure_logging(log_level or RelayConfig().log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
