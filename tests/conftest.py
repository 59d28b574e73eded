"""Shared test fixtures for witnessrelay."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any, NamedTuple
from urllib.parse import urlencode

import pytest

from witnessrelay.bridge.credentials import AuthError
from witnessrelay.bridge.http import HttpClient, HttpError, HttpResponse
from witnessrelay.core import dagcbor
from witnessrelay.core.multiformats import CID, StreamRef
from witnessrelay.core.witness_codec import encode_car, encode_witness

CAS_URL = "https://cas.test"
NODE_URL = "http://node.test:5101"
CERAMIC_URL = "http://ceramic.test:7007"


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class RecordedCall(NamedTuple):
    method: str
    url: str
    full_url: str
    body: bytes | None
    headers: dict[str, str]
    params: dict[str, str]


class FakeHttpClient(HttpClient):
    """HttpClient with a canned route table instead of a network.

    Routes are keyed on ``(METHOD, url-without-query)``. A route value is
    either an ``HttpResponse`` or an exception instance to raise. Unknown
    routes answer HTTP 404.
    """

    def __init__(self) -> None:
        super().__init__(timeout_s=1.0)
        self.routes: dict[tuple[str, str], HttpResponse | Exception] = {}
        self.calls: list[RecordedCall] = []

    def add_json(self, method: str, url: str, payload: Any) -> None:
        self.routes[(method, url)] = HttpResponse(
            status=200, body=json.dumps(payload).encode("utf-8")
        )

    def add_body(self, method: str, url: str, body: bytes) -> None:
        self.routes[(method, url)] = HttpResponse(status=200, body=body)

    def add_status(self, method: str, url: str, status: int, body: bytes = b"") -> None:
        self.routes[(method, url)] = HttpError(status, "error", url, body)

    def add_error(self, method: str, url: str, exc: Exception) -> None:
        self.routes[(method, url)] = exc

    def calls_to(self, url: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.url == url]

    def request(
        self,
        method: str,
        url: str,
        *,
        body: bytes | None = None,
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> HttpResponse:
        full_url = f"{url}?{urlencode(params)}" if params else url
        self.calls.append(
            RecordedCall(method, url, full_url, body, dict(headers or {}), dict(params or {}))
        )
        route = self.routes.get((method, url))
        if route is None:
            raise HttpError(404, "Not Found", full_url)
        if isinstance(route, Exception):
            raise route
        return route


class StaticIssuer:
    """Credential issuer returning a fixed token (or raising AuthError)."""

    def __init__(self, token: str = "h.p.s", error: str = "") -> None:
        self.token = token
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def issue(self, url: str, digest: str) -> str:
        self.calls.append((url, digest))
        if self.error:
            raise AuthError(self.error)
        return self.token


class BuiltWitness(NamedTuple):
    transport: str
    canonical: bytes
    root: CID


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def fake_http() -> FakeHttpClient:
    """Provide an HTTP client with an empty route table."""
    return FakeHttpClient()


@pytest.fixture
def issuer() -> StaticIssuer:
    return StaticIssuer()


@pytest.fixture
def make_witness() -> Callable[..., BuiltWitness]:
    """Factory fixture: build a single-block witness container."""

    def _factory(payload: dict[str, Any] | None = None) -> BuiltWitness:
        block = dagcbor.dumps(payload if payload is not None else {"proof": "anchored"})
        root = CID.create(block)
        canonical = encode_car([root], [(root, block)])
        return BuiltWitness(encode_witness(canonical), canonical, root)

    return _factory


@pytest.fixture
def stream_id() -> str:
    """A syntactically valid StreamID (base36, tile stream type)."""
    return str(StreamRef(stream_type=0, genesis=CID.create(b"genesis commit")))


@pytest.fixture
def anchor_cid() -> str:
    return str(CID.create(b"anchor commit"))


@pytest.fixture
def status_url() -> Callable[[str], str]:
    """Map a commit id to its status URL on the fake anchoring service."""
    return lambda commit_id: f"{CAS_URL}/api/v0/requests/{commit_id}"
