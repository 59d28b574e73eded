"""Per-item state machine — valid transitions only, no revisits.

One ``ItemMachine`` tracks one commit identifier through a single pass and
produces the frozen ``ItemOutcome`` once the item reaches DONE.
"""

from __future__ import annotations

from witnessrelay.models.artifacts import DeliveryOutcome
from witnessrelay.models.items import VALID_ITEM_TRANSITIONS, ItemOutcome, ItemState
from witnessrelay.models.status import AnchorStatus


class InvalidItemTransitionError(RuntimeError):
    """Raised when a requested item transition is not valid."""


class ItemMachine:
    """Tracks the state of one commit identifier.

    Parameters
    ----------
    commit_id:
        The commit identifier being reconciled.
    """

    def __init__(self, commit_id: str) -> None:
        self.commit_id = commit_id
        self._history: list[ItemState] = [ItemState.PENDING_QUERY]
        self._disposition = ItemState.PENDING_QUERY
        self.anchor_status: AnchorStatus | None = None
        self.current_stage = "query"
        self.stage = ""
        self.error = ""
        self.deliveries: list[DeliveryOutcome] = []
        self.roots: list[str] = []
        self.loaded_stream = ""

    @property
    def state(self) -> ItemState:
        return self._history[-1]

    @property
    def history(self) -> list[ItemState]:
        return list(self._history)

    @property
    def is_done(self) -> bool:
        return self.state is ItemState.DONE

    def transition(self, target: ItemState) -> ItemState:
        """Move to *target*, enforcing ``VALID_ITEM_TRANSITIONS``."""
        current = self.state
        if target not in VALID_ITEM_TRANSITIONS[current]:
            raise InvalidItemTransitionError(
                f"Invalid transition for {self.commit_id}: "
                f"{current.value} -> {target.value}"
            )
        self._history.append(target)
        if target is not ItemState.DONE:
            self._disposition = target
        return target

    def enter(self, stage: str) -> None:
        """Note the pipeline stage now running (used to label aborts)."""
        self.current_stage = stage

    def fail(self, target: ItemState, stage: str, error: str) -> None:
        """Record a failure at *stage* and move to the *target* disposition."""
        self.transition(target)
        self.stage = stage
        self.error = error

    def abort(self, error: str) -> None:
        """Move to ABORTED from wherever the item currently is."""
        stage = self.current_stage
        if self.is_done or self.state is ItemState.ABORTED:
            return
        if ItemState.ABORTED not in VALID_ITEM_TRANSITIONS[self.state]:
            # Already at a disposition; the error happened while finishing.
            self.stage, self.error = stage, error
            return
        self.fail(ItemState.ABORTED, stage, error)

    def finish(self) -> ItemOutcome:
        """Transition to DONE (if not already) and freeze the outcome."""
        if not self.is_done:
            self.transition(ItemState.DONE)
        return ItemOutcome(
            commit_id=self.commit_id,
            disposition=self._disposition,
            history=list(self._history),
            anchor_status=self.anchor_status,
            stage=self.stage,
            error=self.error,
            deliveries=list(self.deliveries),
            roots=list(self.roots),
            loaded_stream=self.loaded_stream,
        )
