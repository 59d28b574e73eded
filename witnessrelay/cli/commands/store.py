"""``witnessrelay store`` — replay stored witness containers into the event store.

Reads every file written by the file sink, parses it as a container and
posts it to the event store. One bad file never stops the rest.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from witnessrelay.bridge.http import HttpClient
from witnessrelay.config import RelayConfig
from witnessrelay.core.witness_codec import DecodeError, parse_witness
from witnessrelay.routing.sinks import DeliveryError
from witnessrelay.routing.sinks.event_store import EventStoreSink
from witnessrelay.routing.sinks.local_file import FilesystemSink

console = Console()


def store_cmd(
    directory: Path = typer.Argument(
        None, help="Directory of stored containers [default: configured output dir]."
    ),
    url: str = typer.Option(None, "--url", help="Event store URL override."),
) -> None:
    """Post every container in DIRECTORY to the event store."""
    config = RelayConfig()
    directory = directory or config.output_dir
    if not directory.is_dir():
        console.print(f"[red]Not a directory:[/red] {directory}")
        raise typer.Exit(code=2)

    files = FilesystemSink(directory, create=False).list_artifacts()
    sink = EventStoreSink(
        HttpClient(timeout_s=config.request_timeout_seconds),
        url or config.event_store_url,
    )

    stored = failed = 0
    for path in files:
        try:
            artifact = parse_witness(path.read_bytes())
            root = sink.post_event(artifact)
        except (DecodeError, DeliveryError, OSError) as exc:
            failed += 1
            console.print(f"[red]FAIL[/red] {path.name}: {exc}")
            continue
        stored += 1
        console.print(f"Stored car {root}")

    console.print(f"\n[bold]{stored}[/bold] stored, [bold]{failed}[/bold] failed")
    if failed:
        raise typer.Exit(code=1)
