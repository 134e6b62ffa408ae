from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Iterator

from .constants import (
    CHUNK_SIZE,
    LENGTH_FORMAT,
    MARKER_END,
    MARKER_MORE,
    MAX_STRING_LENGTH,
    SIZE_FORMAT,
)
from .errors import ProtocolViolationError
from .net import TcpEndpoint

_LENGTH = struct.Struct(LENGTH_FORMAT)
_SIZE = struct.Struct(SIZE_FORMAT)


def to_wire_uint64(value: int) -> bytes:
    try:
        return _SIZE.pack(value)
    except struct.error as exc:
        raise ValueError(f"not an unsigned 64-bit value: {value!r}") from exc


def from_wire_uint64(raw: bytes) -> int:
    if len(raw) != _SIZE.size:
        raise ValueError(f"expected {_SIZE.size} bytes, got {len(raw)}")
    (value,) = _SIZE.unpack(raw)
    return value


def encode_text(text: str) -> bytes:
    """Wire bytes for a text field; surrogate-escaped path bytes go out unchanged."""
    raw = text.encode("utf-8", errors="surrogateescape")
    if len(raw) > MAX_STRING_LENGTH:
        raise ValueError(f"string too long: {len(raw)} bytes")
    return raw


def write_string(endpoint: TcpEndpoint, text: str) -> None:
    raw = encode_text(text)
    endpoint.write_exact(_LENGTH.pack(len(raw)))
    if raw:
        endpoint.write_exact(raw)


def read_string(endpoint: TcpEndpoint, max_length: int = MAX_STRING_LENGTH) -> str:
    (length,) = _LENGTH.unpack(endpoint.read_exact(_LENGTH.size))
    if length > max_length:
        raise ProtocolViolationError(
            f"string length {length} exceeds limit of {max_length} bytes"
        )
    return endpoint.read_exact(length).decode("utf-8", errors="replace")


def write_size(endpoint: TcpEndpoint, size: int) -> None:
    endpoint.write_exact(to_wire_uint64(size))


def read_size(endpoint: TcpEndpoint) -> int:
    return from_wire_uint64(endpoint.read_exact(_SIZE.size))


class ChunkMarker(bytes, enum.Enum):
    MORE = MARKER_MORE
    END = MARKER_END

    @classmethod
    def parse(cls, raw: bytes) -> "ChunkMarker":
        try:
            return cls(raw)
        except ValueError:
            raise ProtocolViolationError(f"unexpected marker byte {raw!r}") from None


@dataclass(frozen=True, slots=True)
class Chunk:
    marker: ChunkMarker
    payload: bytes | memoryview = b""

    @property
    def is_end(self) -> bool:
        return self.marker is ChunkMarker.END

    def to_bytes(self) -> bytes:
        return self.marker.value + bytes(self.payload)


def iter_chunks(data: bytes | memoryview, chunk_size: int = CHUNK_SIZE) -> Iterator[Chunk]:
    """Frames for one transfer: a MORE frame per slice, then the two END frames."""
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    view = memoryview(data)
    for offset in range(0, len(view), chunk_size):
        yield Chunk(ChunkMarker.MORE, view[offset : offset + chunk_size])
    yield Chunk(ChunkMarker.END)
    yield Chunk(ChunkMarker.END)
