"""Anchor status records — a tagged variant over the anchoring service states.

Only COMPLETED records carry the witness container and the anchor commit
reference. Statuses the relay does not recognise map to UNKNOWN so new
service states never break parsing.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class AnchorStatus(str, Enum):
    """Request states reported by the anchoring service."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    READY = "READY"
    REPLACED = "REPLACED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw: Any) -> AnchorStatus:
        if isinstance(raw, str):
            try:
                return cls(raw.strip().upper())
            except ValueError:
                pass
        return cls.UNKNOWN


class AnchorStatusRecord(BaseModel):
    """Disposition of one commit as reported by the anchoring service."""

    model_config = ConfigDict(frozen=True)

    commit_id: str
    status: AnchorStatus
    stream_id: str | None = None
    message: str = ""

    @property
    def has_witness(self) -> bool:
        """Whether this record carries a witness container to decode."""
        return False


class CompletedAnchorRecord(AnchorStatusRecord):
    """A COMPLETED anchor request with its proof material."""

    status: Literal[AnchorStatus.COMPLETED] = AnchorStatus.COMPLETED
    witness_car: str | None = None  # transport-encoded CAR
    anchor_commit_cid: str | None = None

    @property
    def has_witness(self) -> bool:
        return bool(self.witness_car)


class UnknownAnchorRecord(AnchorStatusRecord):
    """A status string this relay does not know about."""

    status: Literal[AnchorStatus.UNKNOWN] = AnchorStatus.UNKNOWN
    raw_status: str = ""


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _anchor_commit_cid(value: Any) -> str | None:
    """Extract ``anchorCommit.cid`` (plain string or a ``{"/": cid}`` link)."""
    if not isinstance(value, Mapping):
        return None
    cid = value.get("cid")
    if isinstance(cid, Mapping):
        cid = cid.get("/")
    return _text(cid)


def parse_status_record(commit_id: str, payload: Mapping[str, Any]) -> AnchorStatusRecord:
    """Build the matching record variant from a status response body.

    Fields other than ``status``, ``streamId``, ``message``, ``witnessCar``
    and ``anchorCommit`` are ignored.
    """
    raw_status = payload.get("status")
    status = AnchorStatus.parse(raw_status)
    common: dict[str, Any] = {
        "commit_id": commit_id,
        "stream_id": _text(payload.get("streamId")),
        "message": payload.get("message") if isinstance(payload.get("message"), str) else "",
    }

    if status is AnchorStatus.COMPLETED:
        return CompletedAnchorRecord(
            **common,
            witness_car=_text(payload.get("witnessCar")),
            anchor_commit_cid=_anchor_commit_cid(payload.get("anchorCommit")),
        )
    if status is AnchorStatus.UNKNOWN:
        return UnknownAnchorRecord(
            **common, raw_status="" if raw_status is None else str(raw_status)
        )
    return AnchorStatusRecord(status=status, **common)
