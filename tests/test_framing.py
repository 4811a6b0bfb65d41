"""
Tests for incremental JSON framing of Electrum responses.
"""

import json

import pytest
from conftest import split_payload

from panopticon.electrum.framing import FrameReader, parse_chunks
from panopticon.errors import FramingError

RESPONSE = {
    "jsonrpc": "2.0",
    "id": 1,
    "result": [
        {"tx_hash": "a" * 64, "height": 800000},
        {"tx_hash": "b" * 64, "height": 0},
    ],
}
PAYLOAD = json.dumps(RESPONSE).encode() + b"\n"


def test_single_chunk() -> None:
    assert parse_chunks([PAYLOAD]) == RESPONSE


@pytest.mark.parametrize("sizes", [[1], [10, 10], [len(PAYLOAD) // 3, len(PAYLOAD) // 3]])
def test_split_chunks_parse_identically(sizes: list[int]) -> None:
    chunks = split_payload(PAYLOAD, sizes)
    assert len(chunks) > 1
    assert parse_chunks(chunks) == parse_chunks([PAYLOAD])


def test_every_byte_boundary() -> None:
    for cut in range(1, len(PAYLOAD)):
        assert parse_chunks([PAYLOAD[:cut], PAYLOAD[cut:]]) == RESPONSE


def test_incomplete_until_last_chunk() -> None:
    reader = FrameReader()
    assert reader.feed(PAYLOAD[:20]) is False
    assert reader.complete is False
    assert reader.feed(PAYLOAD[20:]) is True
    assert reader.document == RESPONSE


def test_multibyte_character_split_across_chunks() -> None:
    payload = json.dumps({"id": 1, "result": "café ₿"}, ensure_ascii=False).encode()
    euro_start = payload.index("₿".encode())

    reader = FrameReader()
    assert reader.feed(payload[: euro_start + 1]) is False
    assert reader.feed(payload[euro_start + 1 :]) is True
    assert reader.document["result"] == "café ₿"


def test_truncated_stream_raises() -> None:
    with pytest.raises(FramingError, match="complete JSON document"):
        parse_chunks([PAYLOAD[:-10]])


def test_empty_stream_raises() -> None:
    with pytest.raises(FramingError):
        FrameReader().finish()


def test_whitespace_only_is_incomplete() -> None:
    reader = FrameReader()
    assert reader.feed(b"  \n") is False


def test_trailing_bytes_after_document_ignored() -> None:
    assert parse_chunks([PAYLOAD + b'{"id": 2']) == RESPONSE


@pytest.mark.parametrize("trailer", [b"\xff", "₿".encode()[:1], b'{"id": 2, "x": "\xe2\x82'])
def test_undecodable_trailing_bytes_ignored(trailer: bytes) -> None:
    assert parse_chunks([PAYLOAD + trailer]) == RESPONSE


def test_undecodable_trailer_in_later_chunk() -> None:
    reader = FrameReader()
    assert reader.feed(PAYLOAD[:-5]) is False
    assert reader.feed(PAYLOAD[-5:] + b"\xff\xfe") is True
    assert reader.document == RESPONSE


def test_undecodable_bytes_inside_document_stay_incomplete() -> None:
    reader = FrameReader()
    assert reader.feed(b'{"result": "\xff"}\n') is False
    with pytest.raises(FramingError):
        reader.finish()


def test_feed_after_complete_is_noop() -> None:
    reader = FrameReader()
    reader.feed(PAYLOAD)
    buffered = reader.buffered
    assert reader.feed(b"garbage") is True
    assert reader.buffered == buffered


def test_scalar_document_requires_whole_buffer() -> None:
    reader = FrameReader()
    assert reader.feed(b"12") is True
    assert reader.document == 12

    reader = FrameReader()
    assert reader.feed(b"12 x") is False


def test_oversized_response_raises() -> None:
    reader = FrameReader(max_size=16)
    with pytest.raises(FramingError, match="exceeds"):
        reader.feed(b'{"result": "' + b"x" * 32)
