"""Per-item reconciliation states and the batch report.

Each commit identifier walks the table below exactly once per pass:

    PENDING_QUERY -> QUERIED -> {QUERY_FAILED | NOT_COMPLETED | DECODE_FAILED
                                 | DELIVERY_FAILED | DELIVERED}
    DELIVERED -> {VERIFIED | VERIFY_FAILED | DONE}
    every disposition -> DONE

ABORTED is reachable from any non-terminal state when an unexpected error
escapes a stage.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from witnessrelay.models.artifacts import DeliveryOutcome
from witnessrelay.models.status import AnchorStatus


class ItemState(str, Enum):
    PENDING_QUERY = "pending_query"
    QUERIED = "queried"
    QUERY_FAILED = "query_failed"
    NOT_COMPLETED = "not_completed"
    DECODE_FAILED = "decode_failed"
    DELIVERY_FAILED = "delivery_failed"
    DELIVERED = "delivered"
    VERIFIED = "verified"
    VERIFY_FAILED = "verify_failed"
    ABORTED = "aborted"
    DONE = "done"


# No state is ever revisited; DONE has no outgoing transitions.
VALID_ITEM_TRANSITIONS: dict[ItemState, set[ItemState]] = {
    ItemState.PENDING_QUERY: {ItemState.QUERIED, ItemState.ABORTED},
    ItemState.QUERIED: {
        ItemState.QUERY_FAILED,
        ItemState.NOT_COMPLETED,
        ItemState.DECODE_FAILED,
        ItemState.DELIVERY_FAILED,
        ItemState.DELIVERED,
        ItemState.ABORTED,
    },
    ItemState.DELIVERED: {
        ItemState.VERIFIED,
        ItemState.VERIFY_FAILED,
        ItemState.DONE,
        ItemState.ABORTED,
    },
    ItemState.QUERY_FAILED: {ItemState.DONE},
    ItemState.NOT_COMPLETED: {ItemState.DONE},
    ItemState.DECODE_FAILED: {ItemState.DONE},
    ItemState.DELIVERY_FAILED: {ItemState.DONE},
    ItemState.VERIFIED: {ItemState.DONE},
    ItemState.VERIFY_FAILED: {ItemState.DONE},
    ItemState.ABORTED: {ItemState.DONE},
    ItemState.DONE: set(),
}

# Dispositions reached only after a COMPLETED record with a witness.
_PAST_GATE: frozenset[ItemState] = frozenset({
    ItemState.DECODE_FAILED,
    ItemState.DELIVERY_FAILED,
    ItemState.DELIVERED,
    ItemState.VERIFIED,
    ItemState.VERIFY_FAILED,
})


class ItemOutcome(BaseModel):
    """Everything the reconciler learned about one commit identifier."""

    model_config = ConfigDict(frozen=True)

    commit_id: str
    disposition: ItemState
    history: list[ItemState] = []
    anchor_status: AnchorStatus | None = None
    stage: str = ""  # stage that failed: "query", "decode", "deliver", "verify"
    error: str = ""
    deliveries: list[DeliveryOutcome] = []
    roots: list[str] = []
    loaded_stream: str = ""

    @property
    def delivered(self) -> bool:
        return ItemState.DELIVERED in self.history

    @property
    def completed(self) -> bool:
        return self.disposition in _PAST_GATE or self.delivered


class BatchReport(BaseModel):
    """Aggregate counts for one reconciliation pass.

    Reports are immutable: ``record`` and ``merge`` return new reports.
    """

    model_config = ConfigDict(frozen=True)

    total: int = 0
    completed: int = 0
    delivered: int = 0
    not_completed: int = 0
    query_failed: int = 0
    decode_failed: int = 0
    delivery_failed: int = 0
    verified: int = 0
    verify_failed: int = 0
    aborted: int = 0
    duplicates: int = 0
    outcomes: list[ItemOutcome] = []

    def record(self, outcome: ItemOutcome) -> BatchReport:
        """Return a new report with *outcome* folded in."""
        state = outcome.disposition
        counters = {
            "total": self.total + 1,
            "completed": self.completed + int(outcome.completed),
            "delivered": self.delivered + int(outcome.delivered),
            "not_completed": self.not_completed + int(state is ItemState.NOT_COMPLETED),
            "query_failed": self.query_failed + int(state is ItemState.QUERY_FAILED),
            "decode_failed": self.decode_failed + int(state is ItemState.DECODE_FAILED),
            "delivery_failed": self.delivery_failed
            + int(state is ItemState.DELIVERY_FAILED),
            "verified": self.verified + int(state is ItemState.VERIFIED),
            "verify_failed": self.verify_failed + int(state is ItemState.VERIFY_FAILED),
            "aborted": self.aborted + int(state is ItemState.ABORTED),
        }
        return self.model_copy(
            update={**counters, "outcomes": [*self.outcomes, outcome]}
        )

    def record_duplicate(self) -> BatchReport:
        return self.model_copy(update={"duplicates": self.duplicates + 1})

    def merge(self, other: BatchReport) -> BatchReport:
        """Combine two reports (e.g. from separate passes)."""
        counts = {
            name: getattr(self, name) + getattr(other, name)
            for name in self.as_counts()
        }
        return self.model_copy(
            update={**counts, "outcomes": [*self.outcomes, *other.outcomes]}
        )

    def as_counts(self) -> dict[str, int]:
        return self.model_dump(exclude={"outcomes"})

    @property
    def should_fail(self) -> bool:
        """Whether a wrapping process should exit non-zero for this run."""
        return self.decode_failed > 0 or (self.completed > 0 and self.delivered == 0)
