"""Sink protocol for witness delivery.

All sinks implement the ``BaseSink`` protocol: a ``sink_name`` property
and a ``deliver(commit_id, artifact)`` method. The dispatcher calls
``deliver`` on every registered sink for every decoded artifact.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from witnessrelay.models.artifacts import WitnessArtifact


class DeliveryError(RuntimeError):
    """Raised when a sink rejects or fails to store an artifact."""


@runtime_checkable
class BaseSink(Protocol):
    """Protocol that every witness sink must implement.

    Sinks are content-addressed destinations. Re-delivering identical
    content must succeed as a no-op.

    Attributes
    ----------
    sink_name : str
        A unique human-readable identifier for this sink instance
        (e.g. ``"local_file"``, ``"ipfs_import"``).
    """

    @property
    def sink_name(self) -> str:
        """Return the unique name of this sink."""
        ...

    def deliver(self, commit_id: str, artifact: WitnessArtifact) -> str:
        """Deliver an artifact and return the destination-assigned identifier.

        Raises
        ------
        DeliveryError
            If the destination did not accept the artifact.
        """
        ...
