from __future__ import annotations

import io
import os
import threading
from dataclasses import dataclass

from .constants import CHUNK_SIZE, LOCALHOST
from .net import TcpEndpoint, TcpListener
from .receiver import FileReceiver
from .sender import FileSender, ServeSummary


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    bytes_transferred: int
    chunks: int
    duration_s: float
    throughput_mbps: float


def run_benchmark(
    *,
    size_bytes: int,
    chunk_size: int = CHUNK_SIZE,
    timeout_ms: int = 10_000,
) -> BenchmarkResult:
    payload = os.urandom(size_bytes)
    sender = FileSender(name="bench-sender", resource_name="bench.bin", data=payload, chunk_size=chunk_size)

    listener = TcpListener.open(LOCALHOST, 0, timeout_ms=timeout_ms)
    host, port = listener.address

    summary_holder: dict[str, ServeSummary] = {}

    def serve_runner() -> None:
        try:
            summary_holder["s"] = sender.serve(listener, max_connections=1)
        finally:
            listener.close()

    t = threading.Thread(target=serve_runner, daemon=True)
    t.start()

    out = io.BytesIO()
    with TcpEndpoint.connect(host, port, timeout_ms=timeout_ms) as ep:
        result = FileReceiver("bench-receiver", out, chunk_size=chunk_size).run(ep)

    t.join(timeout=10.0)

    if out.getvalue() != payload:
        raise AssertionError("received bytes differ from the sent payload")
    summary = summary_holder.get("s")
    if summary is None or summary.completed != 1:
        raise AssertionError(f"sender did not complete cleanly: {summary}")

    metrics = result.metrics
    duration_s = max(0.001, metrics.duration_s)
    return BenchmarkResult(
        bytes_transferred=metrics.bytes_transferred,
        chunks=metrics.chunks,
        duration_s=duration_s,
        throughput_mbps=(size_bytes * 8 / 1_000_000) / duration_s,
    )
