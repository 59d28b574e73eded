"""Small HTTP client shared by every networked component.

Wraps ``urllib.request`` behind one ``request`` method so the anchor client,
the node sinks and the stream verifier all get the same timeout, error
mapping and logging. Tests substitute a subclass that overrides
``request``.

Error mapping:
- non-2xx responses raise ``HttpError`` (status, reason, url, body)
- connection failures, timeouts and unparsable responses raise
  ``HttpTransportError``
"""

from __future__ import annotations

import json
import logging
import uuid
from http.client import HTTPException
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "witnessrelay/0.1"


class HttpError(RuntimeError):
    """Raised for a non-2xx HTTP response."""

    def __init__(self, status: int, reason: str, url: str, body: bytes = b"") -> None:
        self.status = status
        self.reason = reason
        self.url = url
        self.body = body
        super().__init__(f"HTTP {status} {reason} for {url}")


class HttpTransportError(RuntimeError):
    """Raised when no HTTP response could be obtained at all."""


class HttpResponse(BaseModel):
    """A completed 2xx response."""

    model_config = ConfigDict(frozen=True)

    status: int
    headers: dict[str, str] = {}
    body: bytes = b""

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json_body(self) -> Any:
        """Decode the body as JSON (``ValueError`` if it is not JSON)."""
        return json.loads(self.body.decode("utf-8"))

    def json_lines(self) -> list[Any]:
        """Decode a newline-delimited JSON body, skipping blank lines."""
        return [json.loads(line) for line in self.text().splitlines() if line.strip()]


class HttpClient:
    """Minimal blocking HTTP client.

    Parameters
    ----------
    timeout_s:
        Per-request timeout in seconds, applied to connect and read.
    user_agent:
        Sent as the ``User-Agent`` header on every request.
    """

    def __init__(
        self,
        timeout_s: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._timeout_s = timeout_s
        self._user_agent = user_agent

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    def request(
        self,
        method: str,
        url: str,
        *,
        body: bytes | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> HttpResponse:
        """Perform one request and return the 2xx response."""
        if params:
            url = f"{url}?{urlencode(params)}"
        req = Request(
            url,
            data=body,
            method=method,
            headers={"User-Agent": self._user_agent, **(headers or {})},
        )
        logger.debug("HTTP %s %s", method, url)
        try:
            with urlopen(req, timeout=self._timeout_s) as resp:
                payload = resp.read()
                status = resp.status
                resp_headers = dict(resp.headers.items())
        except HTTPError as exc:
            try:
                error_body = exc.read()
            except OSError:
                error_body = b""
            raise HttpError(exc.code, str(exc.reason), url, error_body) from exc
        except URLError as exc:
            raise HttpTransportError(f"{method} {url}: {exc.reason}") from exc
        except (TimeoutError, OSError, HTTPException) as exc:
            raise HttpTransportError(f"{method} {url}: {exc}") from exc

        if not 200 <= status < 300:
            raise HttpError(status, "unexpected status", url, payload)
        return HttpResponse(status=status, headers=resp_headers, body=payload)

    # ------------------------------------------------------------------
    # Convenience wrappers
    # ------------------------------------------------------------------

    def get_json(self, url: str, *, headers: dict[str, str] | None = None) -> Any:
        merged = {"Accept": "application/json", **(headers or {})}
        return self.request("GET", url, headers=merged).json_body()

    def post_json(
        self,
        url: str,
        payload: Any,
        *,
        headers: dict[str, str] | None = None,
    ) -> HttpResponse:
        body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        merged = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            **(headers or {}),
        }
        return self.request("POST", url, body=body, headers=merged)

    def post_multipart(
        self,
        url: str,
        data: bytes,
        *,
        field: str = "file",
        filename: str = "data",
        content_type: str = "application/octet-stream",
        params: dict[str, str] | None = None,
    ) -> HttpResponse:
        """POST *data* as a single-part ``multipart/form-data`` upload."""
        boundary = f"witnessrelay-{uuid.uuid4().hex}"
        body = b"".join([
            f"--{boundary}\r\n".encode("ascii"),
            (
                f'Content-Disposition: form-data; name="{field}"; '
                f'filename="{filename}"\r\n'
            ).encode("utf-8"),
            f"Content-Type: {content_type}\r\n\r\n".encode("ascii"),
            data,
            f"\r\n--{boundary}--\r\n".encode("ascii"),
        ])
        headers = {"Content-Type": f"multipart/form-data; boundary={boundary}"}
        return self.request("POST", url, body=body, headers=headers, params=params)
