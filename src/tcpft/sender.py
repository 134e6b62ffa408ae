from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from .constants import CHUNK_SIZE, MAX_STRING_LENGTH
from .errors import ArgumentError, TransferError
from .handshake import Handshake, Offer
from .net import TcpEndpoint, TcpListener
from .receiver import Metrics
from .wire import encode_text, iter_chunks

logger = logging.getLogger(__name__)


def stream_chunks(
    endpoint: TcpEndpoint,
    data: bytes,
    chunk_size: int = CHUNK_SIZE,
) -> Metrics:
    metrics = Metrics()
    for chunk in iter_chunks(data, chunk_size):
        endpoint.write_exact(chunk.to_bytes())
        if not chunk.is_end:
            metrics.record(len(chunk.payload))
    metrics.end_ts = time.monotonic()
    return metrics


@dataclass(frozen=True, slots=True)
class ServeSummary:
    completed: int = 0
    failed: int = 0

    @property
    def handled(self) -> int:
        return self.completed + self.failed


@dataclass(slots=True)
class FileSender:
    name: str
    resource_name: str
    data: bytes
    chunk_size: int = CHUNK_SIZE
    max_string_length: int = MAX_STRING_LENGTH

    def __post_init__(self) -> None:
        for field_name in ("name", "resource_name"):
            try:
                encode_text(getattr(self, field_name))
            except ValueError as exc:
                raise ArgumentError(f"{field_name} cannot be sent: {exc}") from exc

    @classmethod
    def from_path(cls, name: str, path: str | Path, **kwargs) -> "FileSender":
        try:
            data = Path(path).read_bytes()
        except OSError as exc:
            raise ArgumentError(f"cannot open file {path}: {exc}") from exc
        return cls(name=name, resource_name=str(path), data=data, **kwargs)

    @property
    def offer(self) -> Offer:
        return Offer(sender_name=self.name, resource_name=self.resource_name, size=len(self.data))

    def serve_connection(self, endpoint: TcpEndpoint) -> Metrics:
        hs = Handshake(endpoint, max_string_length=self.max_string_length)
        try:
            client_name = hs.accept_request()
            logger.info("client says: %s", client_name)
            hs.send_offer(self.offer)
            hs.await_ready()
            metrics = stream_chunks(endpoint, self.data, self.chunk_size)
        finally:
            hs.close()
        logger.info(
            "done sending %d bytes in %d chunks to %s", metrics.bytes_transferred, metrics.chunks, client_name
        )
        return metrics

    def serve(self, listener: TcpListener, max_connections: int | None = None) -> ServeSummary:
        """Accept and serve peers one at a time.

        A failure inside one connection is logged and the loop moves on to the
        next peer. Failures of the listening socket itself propagate.
        """
        completed = 0
        failed = 0
        while max_connections is None or completed + failed < max_connections:
            endpoint = listener.accept()
            peer = endpoint.peer
            logger.info("accepted from %s", peer)
            try:
                with endpoint:
                    self.serve_connection(endpoint)
            except (TransferError, OSError) as exc:
                failed += 1
                logger.error("transfer to %s failed: %s", peer, exc)
            else:
                completed += 1
            logger.info("waiting for next client...")
        return ServeSummary(completed=completed, failed=failed)
