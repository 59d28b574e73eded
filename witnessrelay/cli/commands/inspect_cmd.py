"""``witnessrelay inspect`` — show the roots and blocks of a stored container."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from witnessrelay.core.witness_codec import DecodeError, decode_witness, parse_witness

console = Console()


def inspect_cmd(
    path: Path = typer.Argument(..., help="Container file (raw CAR bytes)."),
    transport: bool = typer.Option(
        False, "--transport", help="FILE holds the transport-encoded text instead."
    ),
) -> None:
    """Parse a witness container and list its contents."""
    try:
        data = path.read_bytes()
        if transport:
            data = decode_witness(data.strip())
        artifact = parse_witness(data)
    except (OSError, DecodeError) as exc:
        console.print(f"[red]Cannot parse {path}:[/red] {exc}")
        raise typer.Exit(code=1)

    table = Table(title=f"{path.name} ({artifact.size_bytes} bytes)")
    table.add_column("Kind", style="cyan")
    table.add_column("CID")
    table.add_column("Size", justify="right")
    for root in artifact.roots:
        table.add_row("root", str(root), "")
    for block in artifact.blocks:
        table.add_row("block", str(block.cid), str(len(block.data)))
    console.print(table)
