"""Anchor status client — authenticated status polling against the anchoring service.

``GET <base>/api/v0/requests/<commit id>`` with a bearer credential bound to
that exact URL and commit id. Every failure (auth when required, transport,
non-2xx, unparsable body) becomes a ``QueryError``; there are no retries
within a pass.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from urllib.parse import quote

from witnessrelay.bridge.credentials import AuthError, CredentialIssuer
from witnessrelay.bridge.http import HttpClient, HttpError, HttpTransportError
from witnessrelay.models.status import AnchorStatusRecord, parse_status_record

logger = logging.getLogger(__name__)

STATUS_PATH = "/api/v0/requests/"


class QueryError(RuntimeError):
    """Raised when no status could be obtained for a commit."""


class AnchorStatusClient:
    """Queries the anchoring service for the disposition of commits.

    Parameters
    ----------
    http:
        Shared HTTP client.
    issuer:
        Produces a credential per request.
    base_url:
        Anchoring service root, e.g. ``https://cas.3boxlabs.com``.
    require_credential:
        When ``False`` (default) a failed credential is logged and the
        request goes out unauthenticated. When ``True`` it fails the query.
    """

    def __init__(
        self,
        http: HttpClient,
        issuer: CredentialIssuer,
        base_url: str,
        *,
        require_credential: bool = False,
    ) -> None:
        self._http = http
        self._issuer = issuer
        self._base_url = base_url.rstrip("/")
        self._require_credential = require_credential

    def status_url(self, commit_id: str) -> str:
        return f"{self._base_url}{STATUS_PATH}{quote(commit_id, safe='')}"

    def _headers(self, url: str, commit_id: str) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        try:
            credential = self._issuer.issue(url, commit_id)
        except AuthError as exc:
            if self._require_credential:
                raise QueryError(f"credential unavailable: {exc}") from exc
            logger.warning(
                "No credential for %s (%s); requesting unauthenticated", commit_id, exc
            )
            return headers
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        elif self._require_credential:
            raise QueryError("credential issuer returned an empty credential")
        return headers

    def query_status(self, commit_id: str) -> AnchorStatusRecord:
        """Fetch and parse the anchor status for *commit_id*."""
        url = self.status_url(commit_id)
        headers = self._headers(url, commit_id)
        logger.info("Fetching anchor status for commit %s", commit_id)
        try:
            payload = self._http.get_json(url, headers=headers)
        except HttpError as exc:
            raise QueryError(f"anchor service returned HTTP {exc.status}") from exc
        except HttpTransportError as exc:
            raise QueryError(f"anchor service unreachable: {exc}") from exc
        except ValueError as exc:
            raise QueryError(f"anchor service returned invalid JSON: {exc}") from exc

        if not isinstance(payload, Mapping):
            raise QueryError(
                f"anchor service returned {type(payload).__name__}, expected an object"
            )
        record = parse_status_record(commit_id, payload)
        logger.debug("Commit %s status %s", commit_id, record.status.value)
        return record
