"""Witness container models (immutable once decoded) and sink delivery results."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from witnessrelay.core.multiformats import CID


class CarBlock(BaseModel):
    """One ``(CID, block bytes)`` section of a CAR container."""

    model_config = ConfigDict(frozen=True)

    cid: CID
    data: bytes


class WitnessArtifact(BaseModel):
    """A decoded witness container.

    ``raw`` holds the canonical container bytes exactly as delivered to
    sinks; ``roots`` and ``blocks`` are the parsed view of those bytes.
    """

    model_config = ConfigDict(frozen=True)

    roots: list[CID]
    blocks: list[CarBlock] = []
    raw: bytes

    @property
    def root_ids(self) -> list[str]:
        return [str(root) for root in self.roots]

    @property
    def primary_root(self) -> CID:
        return self.roots[0]

    @property
    def size_bytes(self) -> int:
        return len(self.raw)


class DeliveryOutcome(BaseModel):
    """Result of handing one artifact to one sink."""

    model_config = ConfigDict(frozen=True)

    sink_name: str
    ok: bool
    destination_id: str = ""  # file path, root CID, event id ...
    reason: str = ""
