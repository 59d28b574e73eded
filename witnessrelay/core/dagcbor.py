"""Minimal DAG-CBOR codec.

Only the strict DAG-CBOR subset is supported: definite-length items,
integers, byte and text strings, arrays, maps with string keys, tag 42
(CID links), booleans, null and floats. Map keys are emitted in the
canonical length-first order so encodings are deterministic.
"""

from __future__ import annotations

import struct
from typing import Any

from witnessrelay.core.multiformats import CID, MultiformatError

_CID_TAG = 42
_MAX_DEPTH = 64


class DagCborError(ValueError):
    """Raised when bytes are not valid DAG-CBOR (or a value cannot be encoded)."""


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def loads(data: bytes) -> Any:
    """Decode a single DAG-CBOR item that spans all of *data*."""
    value, end = decode(data, 0)
    if end != len(data):
        raise DagCborError(f"{len(data) - end} trailing bytes after DAG-CBOR item")
    return value


def decode(data: bytes, offset: int = 0) -> tuple[Any, int]:
    """Decode one item starting at *offset*. Returns ``(value, next_offset)``."""
    return _decode_item(data, offset, 0)


def _read_head(data: bytes, pos: int) -> tuple[int, int, int, int]:
    if pos >= len(data):
        raise DagCborError(f"unexpected end of data at offset {pos}")
    initial = data[pos]
    major, info = initial >> 5, initial & 0x1F
    pos += 1
    if info < 24:
        return major, info, info, pos
    widths = {24: 1, 25: 2, 26: 4, 27: 8}
    if info not in widths:
        raise DagCborError(f"unsupported additional info {info} at offset {pos - 1}")
    width = widths[info]
    if pos + width > len(data):
        raise DagCborError(f"truncated item head at offset {pos - 1}")
    value = int.from_bytes(data[pos : pos + width], "big")
    return major, info, value, pos + width


def _take(data: bytes, pos: int, length: int) -> tuple[bytes, int]:
    end = pos + length
    if end > len(data):
        raise DagCborError(f"truncated string at offset {pos}")
    return bytes(data[pos:end]), end


def _decode_item(data: bytes, pos: int, depth: int) -> tuple[Any, int]:
    if depth > _MAX_DEPTH:
        raise DagCborError("nesting too deep")
    major, info, value, pos = _read_head(data, pos)

    if major == 0:
        return value, pos
    if major == 1:
        return -1 - value, pos
    if major == 2:
        return _take(data, pos, value)
    if major == 3:
        raw, pos = _take(data, pos, value)
        try:
            return raw.decode("utf-8"), pos
        except UnicodeDecodeError as exc:
            raise DagCborError(f"invalid UTF-8 text: {exc}") from exc
    if major == 4:
        items = []
        for _ in range(value):
            item, pos = _decode_item(data, pos, depth + 1)
            items.append(item)
        return items, pos
    if major == 5:
        result: dict[str, Any] = {}
        for _ in range(value):
            key, pos = _decode_item(data, pos, depth + 1)
            if not isinstance(key, str):
                raise DagCborError("map keys must be strings")
            if key in result:
                raise DagCborError(f"duplicate map key {key!r}")
            result[key], pos = _decode_item(data, pos, depth + 1)
        return result, pos
    if major == 6:
        if value != _CID_TAG:
            raise DagCborError(f"unsupported tag {value}")
        link, pos = _decode_item(data, pos, depth + 1)
        if not isinstance(link, bytes) or not link.startswith(b"\x00"):
            raise DagCborError("tag 42 must wrap identity-prefixed CID bytes")
        try:
            cid, end = CID.from_bytes(link, 1)
        except MultiformatError as exc:
            raise DagCborError(f"invalid CID link: {exc}") from exc
        if end != len(link):
            raise DagCborError("trailing bytes in CID link")
        return cid, pos

    # major 7: simple values and floats
    if info == 20:
        return False, pos
    if info == 21:
        return True, pos
    if info == 22:
        return None, pos
    if info == 25:
        return struct.unpack(">e", value.to_bytes(2, "big"))[0], pos
    if info == 26:
        return struct.unpack(">f", value.to_bytes(4, "big"))[0], pos
    if info == 27:
        return struct.unpack(">d", value.to_bytes(8, "big"))[0], pos
    raise DagCborError(f"unsupported simple value {info}")


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def dumps(value: Any) -> bytes:
    """Encode *value* as canonical DAG-CBOR."""
    out = bytearray()
    _encode_item(value, out)
    return bytes(out)


def _write_head(major: int, value: int, out: bytearray) -> None:
    if value < 24:
        out.append((major << 5) | value)
    elif value < 1 << 8:
        out.append((major << 5) | 24)
        out += value.to_bytes(1, "big")
    elif value < 1 << 16:
        out.append((major << 5) | 25)
        out += value.to_bytes(2, "big")
    elif value < 1 << 32:
        out.append((major << 5) | 26)
        out += value.to_bytes(4, "big")
    elif value < 1 << 64:
        out.append((major << 5) | 27)
        out += value.to_bytes(8, "big")
    else:
        raise DagCborError(f"integer out of range: {value}")


def _encode_item(value: Any, out: bytearray) -> None:
    if value is None:
        out.append(0xF6)
    elif value is True:
        out.append(0xF5)
    elif value is False:
        out.append(0xF4)
    elif isinstance(value, int):
        if value >= 0:
            _write_head(0, value, out)
        else:
            _write_head(1, -1 - value, out)
    elif isinstance(value, float):
        out.append(0xFB)
        out += struct.pack(">d", value)
    elif isinstance(value, (bytes, bytearray)):
        _write_head(2, len(value), out)
        out += value
    elif isinstance(value, str):
        raw = value.encode("utf-8")
        _write_head(3, len(raw), out)
        out += raw
    elif isinstance(value, CID):
        _write_head(6, _CID_TAG, out)
        link = b"\x00" + value.to_bytes()
        _write_head(2, len(link), out)
        out += link
    elif isinstance(value, (list, tuple)):
        _write_head(4, len(value), out)
        for item in value:
            _encode_item(item, out)
    elif isinstance(value, dict):
        keys = []
        for key in value:
            if not isinstance(key, str):
                raise DagCborError("map keys must be strings")
            keys.append((key.encode("utf-8"), key))
        keys.sort(key=lambda pair: (len(pair[0]), pair[0]))
        _write_head(5, len(keys), out)
        for raw_key, key in keys:
            _write_head(3, len(raw_key), out)
            out += raw_key
            _encode_item(value[key], out)
    else:
        raise DagCborError(f"cannot encode {type(value).__name__} as DAG-CBOR")
