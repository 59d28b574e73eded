"""SinkDispatcher — delivers each decoded witness to ALL configured sinks.

Delivery is best-effort across sinks: a failure in one sink never stops
delivery to the others. Whether the item counts as delivered depends on
the dispatcher's ``DeliveryPolicy``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from witnessrelay.models.artifacts import DeliveryOutcome, WitnessArtifact
from witnessrelay.routing.sinks import DeliveryError

if TYPE_CHECKING:
    from witnessrelay.routing.sinks import BaseSink

logger = logging.getLogger(__name__)


class DeliveryPolicy(str, Enum):
    """When a multi-sink delivery counts as successful."""

    ANY = "any"  # at least one sink accepted the artifact
    ALL = "all"  # every registered sink accepted it


class SinkDispatchError(DeliveryError):
    """Raised when the delivery policy is not satisfied.

    ``outcomes`` carries the per-sink results for reporting.
    """

    def __init__(self, message: str, outcomes: list[DeliveryOutcome]) -> None:
        super().__init__(message)
        self.outcomes = outcomes


class SinkDispatcher:
    """Routes witness artifacts to every registered sink.

    Usage
    -----
    >>> dispatcher = SinkDispatcher(policy=DeliveryPolicy.ANY)
    >>> dispatcher.register_sink(filesystem_sink)
    >>> dispatcher.register_sink(import_sink)
    >>> dispatcher.deliver(commit_id, artifact)
    """

    def __init__(self, policy: DeliveryPolicy = DeliveryPolicy.ANY) -> None:
        self._sinks: list[BaseSink] = []
        self._policy = DeliveryPolicy(policy)

    @property
    def policy(self) -> DeliveryPolicy:
        return self._policy

    # ------------------------------------------------------------------
    # Sink management
    # ------------------------------------------------------------------

    def register_sink(self, sink: BaseSink) -> None:
        """Register a sink. Duplicate registration is silently ignored."""
        if sink not in self._sinks:
            self._sinks.append(sink)
            logger.info("Registered sink: %s", sink.sink_name)

    def unregister_sink(self, sink: BaseSink) -> None:
        """Remove a previously registered sink."""
        try:
            self._sinks.remove(sink)
            logger.info("Unregistered sink: %s", sink.sink_name)
        except ValueError:
            pass

    @property
    def registered_sinks(self) -> list[BaseSink]:
        """Return a copy of the registered sink list."""
        return list(self._sinks)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def deliver(self, commit_id: str, artifact: WitnessArtifact) -> list[DeliveryOutcome]:
        """Deliver *artifact* to every sink, in registration order.

        Raises
        ------
        SinkDispatchError
            If no sinks are registered, or the policy is not met.
        """
        if not self._sinks:
            raise SinkDispatchError(f"No sinks registered for {commit_id}", [])

        outcomes: list[DeliveryOutcome] = []
        for sink in self._sinks:
            try:
                destination = sink.deliver(commit_id, artifact)
                outcomes.append(
                    DeliveryOutcome(sink_name=sink.sink_name, ok=True, destination_id=destination)
                )
            except Exception as exc:  # noqa: BLE001
                logger.error("Sink %s failed for commit %s: %s", sink.sink_name, commit_id, exc)
                outcomes.append(
                    DeliveryOutcome(sink_name=sink.sink_name, ok=False, reason=str(exc))
                )

        failed = [o for o in outcomes if not o.ok]
        succeeded = len(outcomes) - len(failed)
        if succeeded == 0 or (failed and self._policy is DeliveryPolicy.ALL):
            raise SinkDispatchError(
                f"{len(failed)}/{len(outcomes)} sinks failed for {commit_id}: "
                + "; ".join(f"{o.sink_name}: {o.reason}" for o in failed),
                outcomes,
            )
        if failed:
            logger.warning(
                "Commit %s: %d/%d sinks succeeded, %d failed",
                commit_id,
                succeeded,
                len(outcomes),
                len(failed),
            )
        return outcomes
