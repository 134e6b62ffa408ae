from __future__ import annotations

import socket
import threading

import pytest

from tcpft.net import TcpEndpoint, TcpListener


@pytest.fixture
def endpoint_pair():
    a, b = socket.socketpair()
    # a wrong test fails on timeout instead of hanging the run
    a.settimeout(5.0)
    b.settimeout(5.0)
    left, right = TcpEndpoint(a), TcpEndpoint(b)
    yield left, right
    left.close()
    right.close()


@pytest.fixture
def serve_in_thread():
    """Run FileSender.serve on a loopback listener; returns (address, holder, thread)."""
    threads: list[threading.Thread] = []

    def start(sender, max_connections: int):
        listener = TcpListener.open("127.0.0.1", 0, timeout_ms=5000)
        holder: dict = {}

        def runner() -> None:
            try:
                holder["summary"] = sender.serve(listener, max_connections=max_connections)
            except Exception as exc:
                holder["error"] = exc
            finally:
                listener.close()

        t = threading.Thread(target=runner, daemon=True)
        t.start()
        threads.append(t)
        return listener.address, holder, t

    yield start
    for t in threads:
        t.join(timeout=5.0)
