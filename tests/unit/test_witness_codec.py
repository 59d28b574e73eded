"""Unit tests for the witness codec — transport decoding and CAR parsing."""

from __future__ import annotations

import base64

import pytest

from witnessrelay.core import dagcbor
from witnessrelay.core.multiformats import CID, encode_varint
from witnessrelay.core.witness_codec import (
    DecodeError,
    decode_artifact,
    decode_witness,
    encode_car,
    encode_witness,
    iter_blocks,
    parse_witness,
    read_roots,
)
from witnessrelay.models.artifacts import CarBlock


def _car_with_header(header: object) -> bytes:
    body = dagcbor.dumps(header)
    return encode_varint(len(body)) + body


class TestTransportDecoding:
    def test_four_chars_decode_to_three_bytes(self):
        assert len(decode_witness("abcd")) == 3

    def test_url_safe_characters_map_to_standard(self):
        decoded = decode_witness("ab-_")
        assert len(decoded) == 3
        assert decoded == base64.b64decode("ab+/")

    def test_unpadded_input_is_padded(self):
        assert decode_witness("YQ") == b"a"
        assert decode_witness("YWI") == b"ab"

    def test_bytes_input(self):
        assert decode_witness(b"YWJj") == b"abc"

    def test_empty_rejected(self):
        with pytest.raises(DecodeError, match="empty"):
            decode_witness("")

    def test_whitespace_only_rejected(self):
        with pytest.raises(DecodeError, match="empty"):
            decode_witness(" \r\n\t")

    def test_embedded_whitespace_ignored(self):
        assert decode_witness("YW Jj\r\nZA\n") == b"abcd"

    def test_line_wrapped_witness(self, make_witness):
        witness = make_witness({"payload": "x" * 80})
        text = witness.transport
        wrapped = "\n".join(text[i : i + 16] for i in range(0, len(text), 16)) + "\n"
        assert decode_witness(wrapped) == witness.canonical

    def test_invalid_length_rejected(self):
        with pytest.raises(DecodeError):
            decode_witness("abcde")

    def test_foreign_characters_rejected(self):
        with pytest.raises(DecodeError):
            decode_witness("ab$d")

    def test_non_ascii_bytes_rejected(self):
        with pytest.raises(DecodeError, match="ASCII"):
            decode_witness(b"\xffabc")

    def test_decoding_is_deterministic(self):
        assert decode_witness("SGVsbG8_") == decode_witness("SGVsbG8_")

    def test_encode_inverts_decode(self):
        data = bytes(range(256))
        transport = encode_witness(data)
        assert "=" not in transport
        assert "+" not in transport and "/" not in transport
        assert decode_witness(transport) == data


class TestCarParsing:
    def test_parse_built_witness(self, make_witness):
        built = make_witness()
        artifact = parse_witness(built.canonical)
        assert artifact.roots == [built.root]
        assert artifact.primary_root == built.root
        assert len(artifact.blocks) == 1
        assert artifact.blocks[0].cid == built.root
        assert artifact.raw == built.canonical
        assert artifact.size_bytes == len(built.canonical)

    def test_read_roots_only(self, make_witness):
        built = make_witness()
        assert read_roots(built.canonical) == [built.root]

    def test_decode_artifact_from_transport(self, make_witness):
        built = make_witness({"n": 1})
        artifact = decode_artifact(built.transport)
        assert artifact.root_ids == [str(built.root)]

    def test_multiple_roots_keep_order(self):
        a_block, b_block = dagcbor.dumps("a"), dagcbor.dumps("b")
        a, b = CID.create(a_block), CID.create(b_block)
        car = encode_car([b, a], [CarBlock(cid=a, data=a_block), (b, b_block)])
        artifact = parse_witness(car)
        assert artifact.roots == [b, a]
        assert artifact.primary_root == b
        assert [blk.cid for blk in artifact.blocks] == [a, b]

    def test_header_only_container(self):
        root = CID.create(b"x")
        artifact = parse_witness(encode_car([root], []))
        assert artifact.blocks == []

    def test_iter_blocks_from_offset(self, make_witness):
        built = make_witness()
        header_len = built.canonical[0]
        blocks = list(iter_blocks(built.canonical, 1 + header_len))
        assert [b.cid for b in blocks] == [built.root]

    def test_digest_mismatch(self):
        root = CID.create(b"original")
        car = encode_car([root], [(root, b"tampered")])
        with pytest.raises(DecodeError, match="digest mismatch"):
            parse_witness(car)
        assert parse_witness(car, verify=False).blocks[0].data == b"tampered"

    def test_truncated_block(self, make_witness):
        built = make_witness()
        with pytest.raises(DecodeError, match="truncated"):
            parse_witness(built.canonical[:-3])

    def test_truncated_header(self, make_witness):
        built = make_witness()
        with pytest.raises(DecodeError, match="truncated"):
            parse_witness(built.canonical[:5])

    def test_empty_input(self):
        with pytest.raises(DecodeError):
            parse_witness(b"")

    def test_zero_length_header(self):
        with pytest.raises(DecodeError, match="empty container header"):
            parse_witness(b"\x00")

    def test_wrong_version(self):
        car = _car_with_header({"roots": [CID.create(b"x")], "version": 2})
        with pytest.raises(DecodeError, match="version"):
            parse_witness(car)

    def test_no_roots(self):
        with pytest.raises(DecodeError, match="no roots"):
            parse_witness(_car_with_header({"roots": [], "version": 1}))

    def test_roots_must_be_links(self):
        with pytest.raises(DecodeError, match="CID links"):
            parse_witness(_car_with_header({"roots": ["bafy"], "version": 1}))

    def test_header_not_a_map(self):
        with pytest.raises(DecodeError, match="not a map"):
            parse_witness(_car_with_header([1, 2]))

    def test_garbled_header(self):
        with pytest.raises(DecodeError, match="unreadable"):
            parse_witness(b"\x03\xff\xff\xff")
