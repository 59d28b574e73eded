"""witnessrelay data models — all Pydantic v2, all frozen (immutable)."""

from witnessrelay.models.artifacts import CarBlock, DeliveryOutcome, WitnessArtifact
from witnessrelay.models.items import (
    VALID_ITEM_TRANSITIONS,
    BatchReport,
    ItemOutcome,
    ItemState,
)
from witnessrelay.models.status import (
    AnchorStatus,
    AnchorStatusRecord,
    CompletedAnchorRecord,
    UnknownAnchorRecord,
    parse_status_record,
)

__all__ = [
    # status
    "AnchorStatus",
    "AnchorStatusRecord",
    "CompletedAnchorRecord",
    "UnknownAnchorRecord",
    "parse_status_record",
    # artifacts
    "CarBlock",
    "WitnessArtifact",
    "DeliveryOutcome",
    # items
    "ItemState",
    "VALID_ITEM_TRANSITIONS",
    "ItemOutcome",
    "BatchReport",
]
