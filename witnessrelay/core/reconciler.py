"""Batch reconciler — the central coordinator for a reconciliation pass.

For every commit identifier, in input order:

    query status -> [COMPLETED with witness] decode -> deliver -> [verify]

Each item is isolated: whatever happens to one commit is folded into the
``BatchReport`` and the next commit is processed. Items run one at a time
by default; ``workers > 1`` runs them on a bounded thread pool while the
report is still accumulated in the calling thread, in input order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from witnessrelay.bridge.anchor_client import AnchorStatusClient, QueryError
from witnessrelay.bridge.credentials import DidKeyCredentialIssuer
from witnessrelay.bridge.http import HttpClient
from witnessrelay.bridge.verifier import StreamVerifier, VerifyError
from witnessrelay.config import RelayConfig
from witnessrelay.core.item_machine import ItemMachine
from witnessrelay.core.witness_codec import DecodeError, decode_artifact
from witnessrelay.models.items import BatchReport, ItemOutcome, ItemState
from witnessrelay.models.status import CompletedAnchorRecord
from witnessrelay.routing.dispatcher import DeliveryPolicy, SinkDispatcher, SinkDispatchError
from witnessrelay.routing.sinks import BaseSink
from witnessrelay.routing.sinks.event_store import EventStoreSink
from witnessrelay.routing.sinks.ipfs_import import NetworkImportSink
from witnessrelay.routing.sinks.local_file import FilesystemSink

logger = logging.getLogger(__name__)

SINK_CHOICES = ("file", "ipfs", "event-store")


def build_sink(
    name: str,
    config: RelayConfig,
    http: HttpClient,
    *,
    out_dir: Path | None = None,
) -> BaseSink:
    """Construct a sink by its CLI name (one of ``SINK_CHOICES``)."""
    if name == "file":
        return FilesystemSink(out_dir or config.output_dir)
    if name == "ipfs":
        return NetworkImportSink(http, config.ipfs_api_url)
    if name == "event-store":
        return EventStoreSink(http, config.event_store_url)
    raise ValueError(f"unknown sink {name!r}; expected one of {', '.join(SINK_CHOICES)}")


class BatchReconciler:
    """Drives the witness pipeline over a sequence of commit identifiers.

    Parameters
    ----------
    status_client:
        Anchor status client (one query per commit per pass).
    dispatcher:
        Sink dispatcher holding every configured sink.
    verifier:
        Optional stream verifier; when absent DELIVERED is terminal.
    workers:
        Number of items processed concurrently. ``1`` keeps strict
        sequential processing.
    """

    def __init__(
        self,
        status_client: AnchorStatusClient,
        dispatcher: SinkDispatcher,
        *,
        verifier: StreamVerifier | None = None,
        workers: int = 1,
    ) -> None:
        self._status_client = status_client
        self._dispatcher = dispatcher
        self._verifier = verifier
        self._workers = max(1, workers)

    @classmethod
    def from_config(
        cls,
        config: RelayConfig,
        *,
        sinks: Sequence[str] = ("file",),
        verify: bool | None = None,
        policy: DeliveryPolicy | str | None = None,
        out_dir: Path | None = None,
        workers: int | None = None,
        http: HttpClient | None = None,
    ) -> BatchReconciler:
        """Wire a reconciler from configuration.

        Raises ``AuthError`` for a malformed signing seed, ``ValueError``
        for an unknown sink or policy name and ``OSError`` when the file
        sink cannot create its output directory.
        """
        http = http or HttpClient(timeout_s=config.request_timeout_seconds)
        issuer = DidKeyCredentialIssuer(config.node_private_key)
        if not issuer.did:
            logger.warning("Node private key not found; anchor queries are unauthenticated")
        status_client = AnchorStatusClient(
            http,
            issuer,
            config.anchor_service_url,
            require_credential=config.require_credential,
        )

        policy = policy or config.delivery_policy
        try:
            policy = DeliveryPolicy(policy)
        except ValueError:
            choices = ", ".join(p.value for p in DeliveryPolicy)
            raise ValueError(
                f"unknown delivery policy {policy!r}; choose from {choices}"
            ) from None
        dispatcher = SinkDispatcher(policy=policy)
        for name in sinks:
            dispatcher.register_sink(build_sink(name, config, http, out_dir=out_dir))

        verify = config.verify_streams if verify is None else verify
        verifier = StreamVerifier(http, config.ceramic_url) if verify else None
        return cls(
            status_client,
            dispatcher,
            verifier=verifier,
            workers=workers or config.workers,
        )

    @property
    def dispatcher(self) -> SinkDispatcher:
        return self._dispatcher

    # ------------------------------------------------------------------
    # Single item
    # ------------------------------------------------------------------

    def process(self, commit_id: str) -> ItemOutcome:
        """Run one commit through the pipeline. Never raises."""
        logger.info("Processing: commit %s", commit_id)
        machine = ItemMachine(commit_id)
        try:
            self._run(machine)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Unexpected error processing commit %s during %s",
                commit_id,
                machine.current_stage,
            )
            machine.abort(f"{type(exc).__name__}: {exc}")
        return machine.finish()

    def _run(self, machine: ItemMachine) -> None:
        commit_id = machine.commit_id

        # Query
        try:
            record = self._status_client.query_status(commit_id)
        except QueryError as exc:
            machine.transition(ItemState.QUERIED)
            machine.fail(ItemState.QUERY_FAILED, "query", str(exc))
            logger.warning("FAIL: No anchor status for commit %s: %s", commit_id, exc)
            return
        machine.transition(ItemState.QUERIED)
        machine.anchor_status = record.status

        if not isinstance(record, CompletedAnchorRecord) or not record.has_witness:
            machine.transition(ItemState.NOT_COMPLETED)
            machine.error = f"anchor status {record.status.value}"
            if isinstance(record, CompletedAnchorRecord):
                machine.error += " without witness"
            logger.info("FAIL: Anchor status is not completed for commit %s (%s)",
                        commit_id, record.status.value)
            return

        # Decode
        machine.enter("decode")
        try:
            artifact = decode_artifact(record.witness_car or "")
        except DecodeError as exc:
            machine.fail(ItemState.DECODE_FAILED, "decode", str(exc))
            logger.error("Error: witness for commit %s could not be decoded: %s", commit_id, exc)
            return
        machine.roots = artifact.root_ids

        # Deliver
        machine.enter("deliver")
        try:
            machine.deliveries = self._dispatcher.deliver(commit_id, artifact)
        except SinkDispatchError as exc:
            machine.deliveries = list(exc.outcomes)
            machine.fail(ItemState.DELIVERY_FAILED, "deliver", str(exc))
            logger.error("Delivery failed for commit %s: %s", commit_id, exc)
            return
        machine.transition(ItemState.DELIVERED)
        logger.info("Delivered witness for commit %s (root %s)", commit_id, artifact.primary_root)

        # Verify (advisory)
        if self._verifier is None:
            return
        machine.enter("verify")
        if not record.stream_id or not record.anchor_commit_cid:
            machine.fail(ItemState.VERIFY_FAILED, "verify",
                         "status record lacks streamId or anchorCommit.cid")
            logger.warning("StreamFailure: commit %s has no anchor commit reference", commit_id)
            return
        try:
            machine.loaded_stream = self._verifier.verify(
                record.stream_id, record.anchor_commit_cid
            )
        except VerifyError as exc:
            machine.fail(ItemState.VERIFY_FAILED, "verify", str(exc))
            logger.warning("StreamFailure: commit %s: %s", commit_id, exc)
            return
        machine.transition(ItemState.VERIFIED)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def reconcile(
        self,
        commit_ids: Iterable[str],
        *,
        on_outcome: Callable[[ItemOutcome], None] | None = None,
    ) -> BatchReport:
        """Reconcile every commit id once and return the batch report.

        Duplicate ids are skipped so each status is fetched at most once.
        *on_outcome* is called in the calling thread, in input order.
        """
        report = BatchReport()
        seen: set[str] = set()
        pending: list[str] = []
        for commit_id in commit_ids:
            if commit_id in seen:
                logger.warning("Skipping duplicate commit %s", commit_id)
                report = report.record_duplicate()
                continue
            seen.add(commit_id)
            pending.append(commit_id)

        if self._workers == 1:
            outcomes: Iterable[ItemOutcome] = (self.process(cid) for cid in pending)
            report = self._fold(report, outcomes, on_outcome)
        else:
            with ThreadPoolExecutor(
                max_workers=self._workers, thread_name_prefix="witnessrelay"
            ) as pool:
                report = self._fold(report, pool.map(self.process, pending), on_outcome)

        logger.info(
            "Batch complete: %d items, %d delivered, %d not completed, "
            "%d query failed, %d decode failed, %d delivery failed",
            report.total,
            report.delivered,
            report.not_completed,
            report.query_failed,
            report.decode_failed,
            report.delivery_failed,
        )
        return report

    @staticmethod
    def _fold(
        report: BatchReport,
        outcomes: Iterable[ItemOutcome],
        on_outcome: Callable[[ItemOutcome], None] | None,
    ) -> BatchReport:
        for outcome in outcomes:
            report = report.record(outcome)
            if on_outcome is not None:
                on_outcome(outcome)
        return report
