"""Witness codec — transport decoding and CARv1 parsing.

The anchoring service ships each witness as a CARv1 container encoded in
an unpadded, URL-safe base64 alphabet. Decoding drops ASCII whitespace,
restores the standard alphabet, pads to a multiple of four and
base64-decodes to the raw container.

CARv1 layout::

    varint(len(header)) | dag-cbor {"roots": [CID, ...], "version": 1}
    varint(len(section)) | CID bytes | block bytes      (repeated)

All failures surface as ``DecodeError`` so callers can skip the item.
Decoding is pure: the same transport string always yields the same bytes.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from collections.abc import Iterable, Sequence

from witnessrelay.core import dagcbor
from witnessrelay.core.multiformats import (
    CID,
    SHA2_256,
    MultiformatError,
    decode_varint,
    encode_varint,
)
from witnessrelay.models.artifacts import CarBlock, WitnessArtifact

CAR_VERSION = 1

# Maps the URL-safe alphabet to the standard one and drops ASCII whitespace.
_TO_STANDARD = str.maketrans("-_", "+/", " \t\n\f\r")


class DecodeError(ValueError):
    """Raised when a witness cannot be decoded or its container is malformed."""


# ---------------------------------------------------------------------------
# Transport encoding
# ---------------------------------------------------------------------------


def decode_witness(transport: str | bytes) -> bytes:
    """Decode the transport form of a witness into canonical container bytes."""
    if isinstance(transport, (bytes, bytearray)):
        try:
            transport = bytes(transport).decode("ascii")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"witness is not ASCII: {exc}") from exc
    standard = transport.translate(_TO_STANDARD)
    if not standard:
        raise DecodeError("empty witness")
    padded = standard + "=" * (-len(standard) % 4)
    try:
        return base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"malformed witness encoding: {exc}") from exc


def encode_witness(canonical: bytes) -> str:
    """Encode container bytes into the service's transport alphabet."""
    return base64.urlsafe_b64encode(canonical).decode("ascii").rstrip("=")


# ---------------------------------------------------------------------------
# CAR parsing
# ---------------------------------------------------------------------------


def _read_header(data: bytes) -> tuple[list[CID], int]:
    try:
        length, pos = decode_varint(data)
    except MultiformatError as exc:
        raise DecodeError(f"unreadable container header length: {exc}") from exc
    if length == 0:
        raise DecodeError("empty container header")
    end = pos + length
    if end > len(data):
        raise DecodeError(
            f"truncated container header ({len(data) - pos} of {length} bytes)"
        )

    try:
        header = dagcbor.loads(data[pos:end])
    except dagcbor.DagCborError as exc:
        raise DecodeError(f"unreadable container header: {exc}") from exc
    if not isinstance(header, dict):
        raise DecodeError("container header is not a map")
    if header.get("version") != CAR_VERSION:
        raise DecodeError(f"unsupported container version {header.get('version')!r}")

    roots = header.get("roots")
    if not isinstance(roots, list) or not roots:
        raise DecodeError("container header has no roots")
    if not all(isinstance(root, CID) for root in roots):
        raise DecodeError("container roots must be CID links")
    return roots, end


def read_roots(canonical: bytes) -> list[CID]:
    """Return the root CIDs from the container header without walking blocks."""
    roots, _ = _read_header(canonical)
    return roots


def _verify_block(cid: CID, block: bytes) -> None:
    if cid.hash_code != SHA2_256:
        return  # other hash functions are passed through unverified
    if hashlib.sha256(block).digest() != cid.digest:
        raise DecodeError(f"block digest mismatch for {cid}")


def iter_blocks(canonical: bytes, offset: int, *, verify: bool = True) -> Iterable[CarBlock]:
    """Yield the ``(CID, block)`` sections that follow the header."""
    pos = offset
    while pos < len(canonical):
        try:
            length, start = decode_varint(canonical, pos)
        except MultiformatError as exc:
            raise DecodeError(f"unreadable section length at {pos}: {exc}") from exc
        end = start + length
        if length == 0 or end > len(canonical):
            raise DecodeError(f"truncated section at offset {pos}")
        try:
            cid, data_start = CID.from_bytes(canonical[:end], start)
        except MultiformatError as exc:
            raise DecodeError(f"unreadable block CID at offset {start}: {exc}") from exc
        block = bytes(canonical[data_start:end])
        if verify:
            _verify_block(cid, block)
        yield CarBlock(cid=cid, data=block)
        pos = end


def parse_witness(canonical: bytes, *, verify: bool = True) -> WitnessArtifact:
    """Fully parse container bytes into a ``WitnessArtifact``.

    Every section is framed and (for sha2-256 CIDs) digest-checked, so a
    partial or garbled container never yields an artifact.
    """
    canonical = bytes(canonical)
    roots, offset = _read_header(canonical)
    blocks = list(iter_blocks(canonical, offset, verify=verify))
    return WitnessArtifact(roots=roots, blocks=blocks, raw=canonical)


def decode_artifact(transport: str | bytes) -> WitnessArtifact:
    """Transport string straight to a parsed artifact."""
    return parse_witness(decode_witness(transport))


# ---------------------------------------------------------------------------
# CAR writing
# ---------------------------------------------------------------------------


def encode_car(roots: Sequence[CID], blocks: Iterable[CarBlock | tuple[CID, bytes]]) -> bytes:
    """Serialize roots and blocks into CARv1 bytes."""
    header = dagcbor.dumps({"roots": list(roots), "version": CAR_VERSION})
    out = bytearray(encode_varint(len(header)) + header)
    for block in blocks:
        cid, data = (block.cid, block.data) if isinstance(block, CarBlock) else block
        section = cid.to_bytes() + data
        out += encode_varint(len(section)) + section
    return bytes(out)
