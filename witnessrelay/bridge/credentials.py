"""Credential issuer — did:key bearer tokens signed with Ed25519 (PyNaCl).

Bridge boundary
---------------
The anchoring service authenticates each request with a compact JWS whose
payload binds the request URL, a fresh nonce and a digest (the commit
identifier). The relay only depends on the ``CredentialIssuer`` protocol;
``DidKeyCredentialIssuer`` is the local-seed implementation, and any other
signer (remote KMS, hardware token) can be dropped in behind the same
``issue(url, digest)`` call.

Token format::

    b64url({"alg":"EdDSA","kid":"<did>#<fingerprint>"})
    . b64url({"url":...,"nonce":...,"digest":...})
    . b64url(ed25519_signature)
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Protocol, runtime_checkable

import nacl.signing
from nacl.exceptions import BadSignatureError

from witnessrelay.core.multiformats import (
    MultiformatError,
    base58btc_decode,
    base58btc_encode,
    base64url_decode,
    base64url_encode,
)

logger = logging.getLogger(__name__)

# multicodec ed25519-pub, varint encoded
_ED25519_PUB_PREFIX = b"\xed\x01"
_DID_KEY_PREFIX = "did:key:z"


class AuthError(RuntimeError):
    """Raised when a credential cannot be issued (e.g. no signing seed)."""


@runtime_checkable
class CredentialIssuer(Protocol):
    """Capability to authenticate a single request.

    Implementations must bind the returned credential to *url* and
    *digest*; a credential is never reused across requests.
    """

    def issue(self, url: str, digest: str) -> str:
        """Return a bearer credential, or raise ``AuthError``."""
        ...


def did_key_from_public_key(public_key: bytes) -> str:
    """Return the ``did:key`` identifier for a raw Ed25519 public key."""
    return _DID_KEY_PREFIX + base58btc_encode(_ED25519_PUB_PREFIX + public_key)


def public_key_from_did_key(did: str) -> bytes:
    """Inverse of ``did_key_from_public_key``."""
    did = did.split("#", 1)[0]
    if not did.startswith(_DID_KEY_PREFIX):
        raise AuthError(f"not a did:key identifier: {did!r}")
    try:
        raw = base58btc_decode(did[len(_DID_KEY_PREFIX):])
    except MultiformatError as exc:
        raise AuthError(f"malformed did:key: {exc}") from exc
    if not raw.startswith(_ED25519_PUB_PREFIX) or len(raw) != 34:
        raise AuthError(f"did:key is not an Ed25519 key: {did!r}")
    return raw[2:]


def _segment(obj: dict[str, Any]) -> str:
    return base64url_encode(json.dumps(obj, separators=(",", ":")).encode("utf-8"))


class DidKeyCredentialIssuer:
    """Issues did:key JWS credentials from a hex Ed25519 seed.

    Parameters
    ----------
    seed_hex:
        32-byte Ed25519 seed, hex encoded. An empty seed is allowed at
        construction time; ``issue`` then raises ``AuthError``.
    """

    def __init__(self, seed_hex: str = "") -> None:
        self._signing_key: nacl.signing.SigningKey | None = None
        self._did = ""
        seed_hex = seed_hex.strip()
        if not seed_hex:
            return
        try:
            seed = bytes.fromhex(seed_hex)
            self._signing_key = nacl.signing.SigningKey(seed)
        except (ValueError, TypeError) as exc:
            raise AuthError(f"invalid signing seed: {exc}") from exc
        self._did = did_key_from_public_key(self._signing_key.verify_key.encode())
        logger.debug("Credential issuer ready for %s", self._did)

    @property
    def did(self) -> str:
        """The issuer's ``did:key`` (empty when no seed is configured)."""
        return self._did

    @property
    def kid(self) -> str:
        return f"{self._did}#{self._did[len('did:key:'):]}" if self._did else ""

    def issue(self, url: str, digest: str) -> str:
        if self._signing_key is None:
            raise AuthError("node private key not configured")
        header = _segment({"alg": "EdDSA", "kid": self.kid})
        payload = _segment({"url": url, "nonce": str(uuid.uuid4()), "digest": digest})
        signing_input = f"{header}.{payload}".encode("ascii")
        signature = self._signing_key.sign(signing_input).signature
        return f"{header}.{payload}.{base64url_encode(signature)}"


def decode_credential(token: str) -> tuple[dict[str, Any], dict[str, Any]]:
    """Split a credential into its decoded ``(header, payload)``."""
    parts = token.split(".")
    if len(parts) != 3:
        raise AuthError("credential must have three segments")
    try:
        header = json.loads(base64url_decode(parts[0]))
        payload = json.loads(base64url_decode(parts[1]))
    except (MultiformatError, ValueError) as exc:
        raise AuthError(f"malformed credential: {exc}") from exc
    return header, payload


def verify_credential(token: str, url: str, digest: str) -> bool:
    """Check a credential's signature and that it is bound to *url*/*digest*."""
    try:
        header, payload = decode_credential(token)
        public_key = public_key_from_did_key(str(header.get("kid", "")))
        head, body, signature = token.split(".")
        nacl.signing.VerifyKey(public_key).verify(
            f"{head}.{body}".encode("ascii"), base64url_decode(signature)
        )
    except (AuthError, BadSignatureError, MultiformatError, ValueError):
        return False
    return payload.get("url") == url and payload.get("digest") == digest
