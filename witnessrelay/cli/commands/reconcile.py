"""``witnessrelay reconcile`` — run a reconciliation pass over a CSV of commits.

Queries the anchoring service for every commit id, decodes completed
witnesses, delivers them to the selected sinks and (optionally) verifies
the anchored stream. Prints a line per commit and a summary table.

Exit codes: 0 success, 1 the report warrants failure (any decode failure,
or completed commits but nothing delivered), 2 the run could not start.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from witnessrelay.bridge.credentials import AuthError
from witnessrelay.config import RelayConfig
from witnessrelay.core.intake import IntakeError, read_commit_ids
from witnessrelay.core.reconciler import SINK_CHOICES, BatchReconciler
from witnessrelay.models.items import BatchReport, ItemOutcome, ItemState
from witnessrelay.routing.dispatcher import DeliveryPolicy

console = Console()

_POLICIES = [p.value for p in DeliveryPolicy]


def print_outcome(outcome: ItemOutcome) -> None:
    """Print the human-readable status line for one commit."""
    cid = outcome.commit_id
    state = outcome.disposition
    if outcome.delivered:
        sinks = ", ".join(d.sink_name for d in outcome.deliveries if d.ok)
        root = outcome.roots[0] if outcome.roots else "?"
        console.print(f"[green]OK[/green] {cid}: root {root} delivered to {sinks}")
        if state is ItemState.VERIFIED:
            console.print(f"  [green]Success[/green]: stream {outcome.loaded_stream} loaded")
        elif state is ItemState.VERIFY_FAILED:
            console.print(f"  [yellow]StreamFailure[/yellow]: {outcome.error}")
        elif state is ItemState.ABORTED:
            console.print(f"  [red]Aborted[/red] during {outcome.stage}: {outcome.error}")
    elif state is ItemState.NOT_COMPLETED:
        console.print(
            f"[yellow]FAIL[/yellow]: Anchor status is not completed for commit {cid} "
            f"({outcome.error})"
        )
    elif state is ItemState.QUERY_FAILED:
        console.print(f"[red]FAIL[/red]: No anchor status for commit {cid}: {outcome.error}")
    elif state is ItemState.DECODE_FAILED:
        console.print(f"[red]FAIL[/red]: Witness for commit {cid} is malformed: {outcome.error}")
    elif state is ItemState.DELIVERY_FAILED:
        console.print(f"[red]FAIL[/red]: Delivery failed for commit {cid}: {outcome.error}")
    else:
        console.print(f"[red]FAIL[/red]: {cid} aborted during {outcome.stage}: {outcome.error}")


def summary_table(report: BatchReport) -> Table:
    table = Table(title="Reconciliation Summary")
    table.add_column("Outcome", style="cyan")
    table.add_column("Count", justify="right")
    for name, count in report.as_counts().items():
        if count or name in ("total", "delivered"):
            table.add_row(name.replace("_", " "), str(count))
    return table


def reconcile_cmd(
    input_csv: Path = typer.Argument(..., help="CSV export with one commit id per row."),
    column: str = typer.Option(
        None, "--column", "-c", help="Column holding commit ids [default: Commit ID]."
    ),
    sink: list[str] = typer.Option(
        ["file"],
        "--sink",
        "-s",
        help=f"Delivery sink, repeatable: {', '.join(SINK_CHOICES)}.",
    ),
    out_dir: Path = typer.Option(
        None, "--out-dir", "-o", help="Output directory for the file sink."
    ),
    verify: bool = typer.Option(
        None, "--verify/--no-verify", help="Load each anchored stream after delivery."
    ),
    policy: str = typer.Option(
        None, "--policy", help=f"Multi-sink success rule: {', '.join(_POLICIES)}."
    ),
    workers: int = typer.Option(
        None, "--workers", "-w", min=1, help="Commits processed concurrently."
    ),
) -> None:
    """Reconcile anchor status for every commit in INPUT_CSV."""
    unknown = [name for name in sink if name not in SINK_CHOICES]
    if unknown:
        raise typer.BadParameter(
            f"unknown sink(s) {', '.join(unknown)}; choose from {', '.join(SINK_CHOICES)}",
            param_hint="--sink",
        )
    if policy is not None and policy not in _POLICIES:
        raise typer.BadParameter(
            f"choose from {', '.join(_POLICIES)}", param_hint="--policy"
        )

    config = RelayConfig()
    try:
        commit_ids = read_commit_ids(input_csv, column or config.input_column)
    except IntakeError as exc:
        console.print(f"[red]Cannot read input:[/red] {exc}")
        raise typer.Exit(code=2)

    try:
        reconciler = BatchReconciler.from_config(
            config,
            sinks=sink,
            verify=verify,
            policy=policy,
            out_dir=out_dir,
            workers=workers,
        )
    except AuthError as exc:
        console.print(f"[red]Credential configuration error:[/red] {exc}")
        raise typer.Exit(code=2)
    except (ValueError, OSError) as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=2)

    report = reconciler.reconcile(commit_ids, on_outcome=print_outcome)

    console.print()
    console.print(summary_table(report))
    if report.should_fail:
        raise typer.Exit(code=1)
