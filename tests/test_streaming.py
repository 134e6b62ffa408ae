from __future__ import annotations

import io

import pytest

from tcpft.errors import ConnectionClosedError, ProtocolViolationError
from tcpft.receiver import receive_chunks
from tcpft.sender import stream_chunks


def test_stream_250_bytes_layout(endpoint_pair):
    left, right = endpoint_pair
    data = bytes(range(250))
    metrics = stream_chunks(left, data)
    assert metrics.chunk_sizes == [100, 100, 50]
    assert metrics.bytes_transferred == 250
    expected = b"1" + data[:100] + b"1" + data[100:200] + b"1" + data[200:] + b"00"
    assert right.read_exact(len(expected)) == expected


def test_stream_empty_is_end_sequence_only(endpoint_pair):
    left, right = endpoint_pair
    metrics = stream_chunks(left, b"")
    left.close()
    assert metrics.chunks == 0
    assert right.read_exact(2) == b"00"
    with pytest.raises(ConnectionClosedError):
        right.read_exact(1)


def test_receive_chunks(endpoint_pair):
    left, right = endpoint_pair
    left.write_exact(b"1" + b"a" * 100 + b"1" + b"b" * 50 + b"00")
    sink = io.BytesIO()
    metrics = receive_chunks(right, 150, sink)
    assert sink.getvalue() == b"a" * 100 + b"b" * 50
    assert metrics.chunk_sizes == [100, 50]
    assert metrics.end_ts is not None


def test_receive_stops_after_end_pair(endpoint_pair):
    left, right = endpoint_pair
    left.write_exact(b"1abc00trailing")
    receive_chunks(right, 3, io.BytesIO())
    assert right.read_exact(8) == b"trailing"


def test_receive_zero_size(endpoint_pair):
    left, right = endpoint_pair
    left.write_exact(b"00")
    sink = io.BytesIO()
    metrics = receive_chunks(right, 0, sink)
    assert sink.getvalue() == b""
    assert metrics.chunks == 0


def test_receive_skips_frame_past_declared_size(endpoint_pair):
    left, right = endpoint_pair
    left.write_exact(b"1xy" + b"1" + b"00")
    sink = io.BytesIO()
    metrics = receive_chunks(right, 2, sink)
    assert sink.getvalue() == b"xy"
    assert metrics.chunk_sizes == [2]


@pytest.mark.parametrize("marker", [b"2", b"\x00", b"\xff", b"x"])
def test_bad_marker_is_protocol_violation(endpoint_pair, marker):
    left, right = endpoint_pair
    left.write_exact(b"1" + b"a" * 100 + marker)
    with pytest.raises(ProtocolViolationError):
        receive_chunks(right, 200, io.BytesIO())


def test_second_end_byte_must_match(endpoint_pair):
    left, right = endpoint_pair
    left.write_exact(b"0" + b"1")
    with pytest.raises(ProtocolViolationError):
        receive_chunks(right, 0, io.BytesIO())


def test_early_end_sequence(endpoint_pair):
    left, right = endpoint_pair
    left.write_exact(b"1" + b"a" * 100 + b"00")
    with pytest.raises(ProtocolViolationError):
        receive_chunks(right, 200, io.BytesIO())


def test_peer_closes_mid_payload(endpoint_pair):
    left, right = endpoint_pair
    left.write_exact(b"1" + b"a" * 40)
    left.close()
    with pytest.raises(ConnectionClosedError):
        receive_chunks(right, 100, io.BytesIO())


def test_custom_chunk_size(endpoint_pair):
    left, right = endpoint_pair
    stream_chunks(left, b"abcdefg", chunk_size=3)
    sink = io.BytesIO()
    metrics = receive_chunks(right, 7, sink, chunk_size=3)
    assert sink.getvalue() == b"abcdefg"
    assert metrics.chunk_sizes == [3, 3, 1]
