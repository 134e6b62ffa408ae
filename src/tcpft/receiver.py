from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import BinaryIO

from .constants import CHUNK_SIZE, MAX_STRING_LENGTH
from .errors import ProtocolViolationError
from .handshake import Handshake, Offer
from .net import TcpEndpoint
from .wire import ChunkMarker

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Metrics:
    chunks: int = 0
    bytes_transferred: int = 0
    chunk_sizes: list[int] = field(default_factory=list)
    start_ts: float = field(default_factory=time.monotonic)
    end_ts: float | None = None

    def record(self, n: int) -> None:
        self.chunks += 1
        self.bytes_transferred += n
        self.chunk_sizes.append(n)

    @property
    def duration_s(self) -> float:
        if self.end_ts is None:
            return 0.0
        return max(0.0, self.end_ts - self.start_ts)

    @property
    def throughput_mbps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return (self.bytes_transferred * 8 / 1_000_000) / self.duration_s


def receive_chunks(
    endpoint: TcpEndpoint,
    size: int,
    sink: BinaryIO,
    chunk_size: int = CHUNK_SIZE,
) -> Metrics:
    metrics = Metrics()
    received = 0

    while True:
        marker = ChunkMarker.parse(endpoint.read_exact(1))

        if marker is ChunkMarker.END:
            second = endpoint.read_exact(1)
            if second != ChunkMarker.END.value:
                raise ProtocolViolationError(f"expected second end marker, got {second!r}")
            if received != size:
                raise ProtocolViolationError(
                    f"stream ended after {received} of {size} bytes"
                )
            break

        want = min(chunk_size, size - received)
        if want == 0:
            # surplus MORE frame past the declared size carries no payload
            logger.debug("ignoring empty frame at %d bytes", received)
            continue
        payload = endpoint.read_exact(want)
        sink.write(payload)
        received += want
        metrics.record(want)

    metrics.end_ts = time.monotonic()
    return metrics


@dataclass(frozen=True, slots=True)
class TransferResult:
    offer: Offer
    metrics: Metrics


@dataclass(slots=True)
class FileReceiver:
    name: str
    out: BinaryIO
    chunk_size: int = CHUNK_SIZE
    max_string_length: int = MAX_STRING_LENGTH

    def run(self, endpoint: TcpEndpoint) -> TransferResult:
        hs = Handshake(endpoint, max_string_length=self.max_string_length)
        hs.send_request(self.name)
        offer = hs.read_offer()

        logger.info("Client name : %s", self.name)
        logger.info("Server name : %s", offer.sender_name)
        logger.info("File name   : %s", offer.resource_name)
        logger.info("File size   : %d bytes", offer.size)

        hs.send_ready()
        try:
            metrics = receive_chunks(endpoint, offer.size, self.out, self.chunk_size)
        finally:
            self.out.flush()
            hs.close()

        logger.info(
            "received termination pair; %d bytes in %d chunks", metrics.bytes_transferred, metrics.chunks
        )
        return TransferResult(offer=offer, metrics=metrics)
