"""``witnessrelay status`` — query the anchor status of a single commit."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.panel import Panel

from witnessrelay.bridge.anchor_client import AnchorStatusClient, QueryError
from witnessrelay.bridge.credentials import AuthError, DidKeyCredentialIssuer
from witnessrelay.bridge.http import HttpClient
from witnessrelay.config import RelayConfig
from witnessrelay.models.status import CompletedAnchorRecord, UnknownAnchorRecord

console = Console()


def status_cmd(
    commit_id: str = typer.Argument(..., help="Commit identifier to look up."),
) -> None:
    """Show the anchoring service's disposition for COMMIT_ID."""
    config = RelayConfig()
    try:
        issuer = DidKeyCredentialIssuer(config.node_private_key)
    except AuthError as exc:
        console.print(f"[red]Credential configuration error:[/red] {exc}")
        raise typer.Exit(code=2)

    client = AnchorStatusClient(
        HttpClient(timeout_s=config.request_timeout_seconds),
        issuer,
        config.anchor_service_url,
        require_credential=config.require_credential,
    )
    try:
        record = client.query_status(commit_id)
    except QueryError as exc:
        console.print(f"[red]FAIL[/red]: No anchor status for commit {commit_id}: {exc}")
        raise typer.Exit(code=1)

    lines = [
        f"[bold]Commit:[/bold]   {record.commit_id}",
        f"[bold]Status:[/bold]   {record.status.value}",
        f"[bold]Stream:[/bold]   {record.stream_id or '-'}",
    ]
    if isinstance(record, CompletedAnchorRecord):
        lines.append(f"[bold]Anchor:[/bold]   {record.anchor_commit_cid or '-'}")
        witness = f"{len(record.witness_car)} chars" if record.witness_car else "absent"
        lines.append(f"[bold]Witness:[/bold]  {witness}")
    if isinstance(record, UnknownAnchorRecord):
        lines.append(f"[bold]Raw status:[/bold] {record.raw_status}")
    if record.message:
        lines.append(f"[dim]{record.message}[/dim]")

    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]Anchor Status[/bold]",
            border_style="green" if record.has_witness else "yellow",
            padding=(1, 2),
        )
    )
