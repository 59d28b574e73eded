"""Network import sink — imports witness containers into an IPFS-compatible node.

Uses the node's RPC API:
- ``POST /api/v0/dag/import?pin-roots=false&stats=true`` (multipart CAR upload);
  the response is a newline-delimited stream of acknowledgements
- ``POST /api/v0/dag/get?arg=<root>`` as a post-import diagnostic

Roots are never pinned here; retention is managed separately.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from witnessrelay.bridge.http import HttpClient, HttpError, HttpTransportError
from witnessrelay.core.multiformats import CID
from witnessrelay.core.witness_codec import DecodeError, read_roots
from witnessrelay.models.artifacts import WitnessArtifact
from witnessrelay.routing.sinks import DeliveryError

logger = logging.getLogger(__name__)


class NetworkImportSink:
    """Imports containers via ``dag/import`` without pinning roots.

    Parameters
    ----------
    http:
        Shared HTTP client.
    api_url:
        Node RPC root, e.g. ``http://ceramic-one-0:5101``.
    check_root:
        Fetch the first root back after import (diagnostic only).
    """

    def __init__(self, http: HttpClient, api_url: str, *, check_root: bool = True) -> None:
        self._http = http
        self._api_url = api_url.rstrip("/")
        self._check_root = check_root

    @property
    def sink_name(self) -> str:
        return "ipfs_import"

    def deliver(self, commit_id: str, artifact: WitnessArtifact) -> str:
        return self.import_to_node(artifact.raw)

    def import_to_node(self, data: bytes) -> str:
        """Import container bytes. Returns the first root CID."""
        try:
            roots = read_roots(data)
        except DecodeError as exc:
            raise DeliveryError(f"refusing to import unreadable container: {exc}") from exc
        logger.debug("NetworkImportSink: container roots %s", [str(r) for r in roots])

        try:
            response = self._http.post_multipart(
                f"{self._api_url}/api/v0/dag/import",
                data,
                filename="witness.car",
                content_type="application/vnd.ipld.car",
                params={"pin-roots": "false", "stats": "true"},
            )
            acks = response.json_lines()
        except (HttpError, HttpTransportError) as exc:
            raise DeliveryError(f"dag/import failed: {exc}") from exc
        except ValueError as exc:
            raise DeliveryError(f"dag/import returned an unreadable acknowledgement: {exc}") from exc

        self._check_acks(acks)
        for ack in acks:
            logger.info("Successfully stored car to IPFS: %s", ack)

        if self._check_root:
            self._fetch_root(roots[0])
        return str(roots[0])

    @staticmethod
    def _check_acks(acks: list[Any]) -> None:
        if not acks:
            raise DeliveryError("dag/import returned an empty acknowledgement")
        for ack in acks:
            if not isinstance(ack, Mapping):
                raise DeliveryError(f"unexpected dag/import acknowledgement: {ack!r}")
            if ack.get("Type") == "error" or ("Message" in ack and "Root" not in ack):
                raise DeliveryError(f"dag/import error: {ack.get('Message', ack)}")
            root = ack.get("Root")
            if isinstance(root, Mapping) and root.get("PinErrorMsg"):
                raise DeliveryError(f"dag/import root error: {root['PinErrorMsg']}")

    def _fetch_root(self, root: CID) -> None:
        """Read the first root back; problems are logged, never raised."""
        try:
            response = self._http.request(
                "POST",
                f"{self._api_url}/api/v0/dag/get",
                params={"arg": str(root)},
            )
        except (HttpError, HttpTransportError) as exc:
            logger.warning("NetworkImportSink: root %s not readable after import: %s", root, exc)
            return
        logger.info("NetworkImportSink: root %s readable (%d bytes)", root, len(response.body))
