"""Stream verifier — asks a node to load a stream at its anchor commit.

Verification is advisory: a failure here never undoes a delivery.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from urllib.parse import quote

from witnessrelay.bridge.http import HttpClient, HttpError, HttpTransportError
from witnessrelay.core.multiformats import MultiformatError, make_commit_id

logger = logging.getLogger(__name__)


class VerifyError(RuntimeError):
    """Raised when the anchored stream cannot be loaded."""


class StreamVerifier:
    """Loads ``streamId`` at ``anchorCommit.cid`` from a node's HTTP API.

    Parameters
    ----------
    http:
        Shared HTTP client.
    node_url:
        Node API root, e.g. ``http://localhost:7007``.
    """

    def __init__(self, http: HttpClient, node_url: str) -> None:
        self._http = http
        self._node_url = node_url.rstrip("/")

    def stream_url(self, commit_id: str) -> str:
        return f"{self._node_url}/api/v0/streams/{quote(commit_id, safe='')}"

    def verify(self, stream_id: str, anchor_commit_cid: str) -> str:
        """Load the stream at the anchor commit. Returns the loaded stream id."""
        try:
            commit_id = make_commit_id(stream_id, anchor_commit_cid)
        except MultiformatError as exc:
            raise VerifyError(f"cannot build anchor commit reference: {exc}") from exc

        try:
            state = self._http.get_json(self.stream_url(commit_id))
        except HttpError as exc:
            raise VerifyError(f"failed to load stream {commit_id}: HTTP {exc.status}") from exc
        except HttpTransportError as exc:
            raise VerifyError(f"failed to load stream {commit_id}: {exc}") from exc
        except ValueError as exc:
            raise VerifyError(f"node returned invalid JSON for {commit_id}: {exc}") from exc

        if not isinstance(state, Mapping) or not state.get("streamId"):
            raise VerifyError(f"node returned no stream state for {commit_id}")
        loaded = str(state["streamId"])
        logger.info("Stream %s loaded successfully at %s", loaded, commit_id)
        return loaded
