"""Event store sink — posts one witness container per call to an event-store node.

``POST <api>/ceramic/events`` with body ``{"data": "<multibase base64url CAR>"}``.
"""

from __future__ import annotations

import logging

from witnessrelay.bridge.http import HttpClient, HttpError, HttpTransportError
from witnessrelay.core.multiformats import multibase_encode
from witnessrelay.models.artifacts import WitnessArtifact
from witnessrelay.routing.sinks import DeliveryError

logger = logging.getLogger(__name__)

EVENTS_PATH = "/ceramic/events"


class EventStoreSink:
    """Uploads parsed containers directly to the event store.

    Parameters
    ----------
    http:
        Shared HTTP client.
    api_url:
        Event-store root, e.g. ``http://ceramic-one-0:5101``.
    """

    def __init__(self, http: HttpClient, api_url: str) -> None:
        self._http = http
        self._api_url = api_url.rstrip("/")

    @property
    def sink_name(self) -> str:
        return "event_store"

    @property
    def events_url(self) -> str:
        return f"{self._api_url}{EVENTS_PATH}"

    def deliver(self, commit_id: str, artifact: WitnessArtifact) -> str:
        return self.post_event(artifact)

    def post_event(self, artifact: WitnessArtifact) -> str:
        """Post the container. Returns its first root CID."""
        body = {"data": multibase_encode(artifact.raw, "u")}
        try:
            self._http.post_json(self.events_url, body)
        except HttpError as exc:
            detail = exc.body.decode("utf-8", errors="replace").strip()
            raise DeliveryError(
                f"event store rejected {artifact.primary_root}: HTTP {exc.status} {detail}".rstrip()
            ) from exc
        except HttpTransportError as exc:
            raise DeliveryError(f"event store unreachable: {exc}") from exc
        logger.info("Stored car %s", artifact.primary_root)
        return str(artifact.primary_root)
