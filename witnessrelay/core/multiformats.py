"""Multiformats primitives used by witness containers and stream references.

Covers the subset the relay needs:
- unsigned LEB128 varints (multiformats flavour, max 9 bytes)
- multibase text encodings: base32 (``b``), base58btc (``z``), base36 (``k``),
  base16 (``f``), base64url (``u``) and base64 (``m``)
- CIDv0 / CIDv1 binary and string forms
- StreamID parsing and CommitID construction for anchored streams
"""

from __future__ import annotations

import base64
import binascii
import hashlib

from pydantic import BaseModel, ConfigDict

# Multicodec table entries
DAG_PB = 0x70
DAG_CBOR = 0x71
RAW = 0x55
DAG_JOSE = 0x85
SHA2_256 = 0x12
STREAMID_CODEC = 0xCE

_MAX_VARINT_BYTES = 9

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


class MultiformatError(ValueError):
    """Raised when a varint, multibase string or CID cannot be decoded."""


# ---------------------------------------------------------------------------
# Varints
# ---------------------------------------------------------------------------


def encode_varint(value: int) -> bytes:
    """Encode a non-negative integer as an unsigned varint."""
    if value < 0:
        raise MultiformatError(f"varint must be non-negative, got {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_varint(data: bytes, offset: int = 0) -> tuple[int, int]:
    """Decode a varint at *offset*. Returns ``(value, next_offset)``."""
    value = 0
    shift = 0
    pos = offset
    while True:
        if pos >= len(data):
            raise MultiformatError(f"truncated varint at offset {offset}")
        if pos - offset >= _MAX_VARINT_BYTES:
            raise MultiformatError(f"varint too long at offset {offset}")
        byte = data[pos]
        pos += 1
        if byte == 0 and shift > 0:
            raise MultiformatError(f"non-minimal varint at offset {offset}")
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, pos
        shift += 7


# ---------------------------------------------------------------------------
# Base-N helpers
# ---------------------------------------------------------------------------


def _encode_base_n(data: bytes, alphabet: str) -> str:
    base = len(alphabet)
    zeros = len(data) - len(data.lstrip(b"\x00"))
    number = int.from_bytes(data, "big")
    digits: list[str] = []
    while number:
        number, rem = divmod(number, base)
        digits.append(alphabet[rem])
    return alphabet[0] * zeros + "".join(reversed(digits))


def _decode_base_n(text: str, alphabet: str) -> bytes:
    base = len(alphabet)
    number = 0
    for char in text:
        idx = alphabet.find(char)
        if idx < 0:
            raise MultiformatError(f"invalid character {char!r} for base{base}")
        number = number * base + idx
    zeros = len(text) - len(text.lstrip(alphabet[0]))
    body = number.to_bytes((number.bit_length() + 7) // 8, "big") if number else b""
    return b"\x00" * zeros + body


def base58btc_encode(data: bytes) -> str:
    return _encode_base_n(data, BASE58_ALPHABET)


def base58btc_decode(text: str) -> bytes:
    return _decode_base_n(text, BASE58_ALPHABET)


def base36_encode(data: bytes) -> str:
    return _encode_base_n(data, BASE36_ALPHABET)


def base36_decode(text: str) -> bytes:
    return _decode_base_n(text.lower(), BASE36_ALPHABET)


def base32_encode(data: bytes) -> str:
    """RFC 4648 base32, lowercase, unpadded (multibase ``b``)."""
    return base64.b32encode(data).decode("ascii").lower().rstrip("=")


def base32_decode(text: str) -> bytes:
    padded = text.upper() + "=" * (-len(text) % 8)
    try:
        return base64.b32decode(padded)
    except binascii.Error as exc:
        raise MultiformatError(f"invalid base32: {exc}") from exc


def base64url_encode(data: bytes) -> str:
    """URL-safe base64 without padding (multibase ``u``, JOSE segments)."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def base64url_decode(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, ValueError) as exc:
        raise MultiformatError(f"invalid base64url: {exc}") from exc


def multibase_encode(data: bytes, prefix: str = "b") -> str:
    """Encode *data* as a multibase string with the given prefix."""
    if prefix == "b":
        return "b" + base32_encode(data)
    if prefix == "z":
        return "z" + base58btc_encode(data)
    if prefix == "k":
        return "k" + base36_encode(data)
    if prefix == "f":
        return "f" + data.hex()
    if prefix == "u":
        return "u" + base64url_encode(data)
    raise MultiformatError(f"unsupported multibase prefix {prefix!r}")


def multibase_decode(text: str) -> bytes:
    """Decode a multibase string, dispatching on its first character."""
    if not text:
        raise MultiformatError("empty multibase string")
    prefix, body = text[0], text[1:]
    if prefix in ("b", "B"):
        return base32_decode(body)
    if prefix == "z":
        return base58btc_decode(body)
    if prefix in ("k", "K"):
        return base36_decode(body)
    if prefix in ("f", "F"):
        try:
            return bytes.fromhex(body)
        except ValueError as exc:
            raise MultiformatError(f"invalid base16: {exc}") from exc
    if prefix == "u":
        return base64url_decode(body)
    if prefix == "m":
        try:
            return base64.b64decode(body + "=" * (-len(body) % 4), validate=True)
        except binascii.Error as exc:
            raise MultiformatError(f"invalid base64: {exc}") from exc
    raise MultiformatError(f"unsupported multibase prefix {prefix!r}")


# ---------------------------------------------------------------------------
# CID
# ---------------------------------------------------------------------------


class CID(BaseModel):
    """A content identifier (CIDv0 or CIDv1).

    ``multihash`` holds the full multihash (hash code, digest length and
    digest). CIDv0 is always dag-pb + sha2-256.
    """

    model_config = ConfigDict(frozen=True)

    version: int
    codec: int
    multihash: bytes

    @classmethod
    def create(cls, data: bytes, codec: int = DAG_CBOR) -> CID:
        """Build a CIDv1 over *data* with a sha2-256 multihash."""
        digest = hashlib.sha256(data).digest()
        multihash = encode_varint(SHA2_256) + encode_varint(len(digest)) + digest
        return cls(version=1, codec=codec, multihash=multihash)

    @classmethod
    def from_bytes(cls, data: bytes, offset: int = 0) -> tuple[CID, int]:
        """Read a binary CID at *offset*. Returns ``(cid, next_offset)``."""
        if data[offset : offset + 2] == b"\x12\x20":
            end = offset + 34
            if end > len(data):
                raise MultiformatError("truncated CIDv0")
            return cls(version=0, codec=DAG_PB, multihash=bytes(data[offset:end])), end

        version, pos = decode_varint(data, offset)
        if version != 1:
            raise MultiformatError(f"unsupported CID version {version}")
        codec, pos = decode_varint(data, pos)
        mh_start = pos
        _code, pos = decode_varint(data, pos)
        length, pos = decode_varint(data, pos)
        end = pos + length
        if end > len(data):
            raise MultiformatError("truncated multihash digest")
        return cls(version=1, codec=codec, multihash=bytes(data[mh_start:end])), end

    @classmethod
    def decode(cls, text: str) -> CID:
        """Parse a CID string (``Qm...`` CIDv0 or any multibase CIDv1)."""
        text = text.strip()
        if len(text) == 46 and text.startswith("Qm"):
            raw = base58btc_decode(text)
        else:
            raw = multibase_decode(text)
            if raw[:2] == b"\x12\x20":
                raise MultiformatError("CIDv0 must not carry a multibase prefix")
        cid, end = cls.from_bytes(raw)
        if end != len(raw):
            raise MultiformatError(f"trailing bytes after CID {text!r}")
        return cid

    @property
    def hash_code(self) -> int:
        return decode_varint(self.multihash)[0]

    @property
    def digest(self) -> bytes:
        _code, pos = decode_varint(self.multihash)
        _length, pos = decode_varint(self.multihash, pos)
        return self.multihash[pos:]

    def to_bytes(self) -> bytes:
        if self.version == 0:
            return self.multihash
        return encode_varint(self.version) + encode_varint(self.codec) + self.multihash

    def __str__(self) -> str:
        if self.version == 0:
            return base58btc_encode(self.multihash)
        return multibase_encode(self.to_bytes(), "b")


# ---------------------------------------------------------------------------
# Stream references
# ---------------------------------------------------------------------------


class StreamRef(BaseModel):
    """A parsed StreamID: stream type plus genesis commit CID."""

    model_config = ConfigDict(frozen=True)

    stream_type: int
    genesis: CID

    def to_bytes(self) -> bytes:
        return (
            encode_varint(STREAMID_CODEC)
            + encode_varint(self.stream_type)
            + self.genesis.to_bytes()
        )

    def __str__(self) -> str:
        return multibase_encode(self.to_bytes(), "k")


def parse_stream_id(text: str) -> StreamRef:
    """Parse a multibase StreamID string (usually base36, ``k...``)."""
    raw = multibase_decode(text.strip())
    codec, pos = decode_varint(raw)
    if codec != STREAMID_CODEC:
        raise MultiformatError(f"not a stream id: codec 0x{codec:x}")
    stream_type, pos = decode_varint(raw, pos)
    genesis, pos = CID.from_bytes(raw, pos)
    if pos != len(raw):
        raise MultiformatError(f"expected a stream id, got a commit id: {text!r}")
    return StreamRef(stream_type=stream_type, genesis=genesis)


def make_commit_id(stream_id: str, commit_cid: str) -> str:
    """Compose the CommitID string naming *stream_id* at *commit_cid*.

    A commit equal to the genesis CID is encoded as a single zero byte.
    """
    ref = parse_stream_id(stream_id)
    commit = CID.decode(commit_cid)
    tail = b"\x00" if commit == ref.genesis else commit.to_bytes()
    return multibase_encode(ref.to_bytes() + tail, "k")
